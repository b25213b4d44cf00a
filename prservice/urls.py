from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

urlpatterns = [
    path('swagger/openapi.yml', SpectacularAPIView.as_view(), name='openapi-schema'),
    path('swagger/', SpectacularSwaggerView.as_view(url_name='openapi-schema'), name='swagger-ui'),
    path('', include('api.urls')),
]
