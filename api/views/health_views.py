from rest_framework import serializers
from rest_framework.decorators import api_view
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, inline_serializer


@extend_schema(responses=inline_serializer('HealthResponse', {'status': serializers.CharField()}))
@api_view(['GET'])
def health_check(request):
    """GET /health - Health check"""
    return Response({'status': 'healthy'})
