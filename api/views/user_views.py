import logging

from rest_framework.decorators import api_view
from rest_framework.response import Response
from drf_spectacular.utils import OpenApiParameter, extend_schema

from ..exceptions import ServiceError
from ..serializers import (
    ErrorResponseSerializer,
    PullRequestShortSerializer,
    SetIsActiveSerializer,
    UserResponseSerializer,
    UserReviewResponseSerializer,
    UserSerializer,
)
from ..services import UserService
from .utils import (
    request_deadline,
    server_error_response,
    service_error_response,
    validation_error_response,
)

logger = logging.getLogger(__name__)

user_service = UserService()


@extend_schema(
    request=SetIsActiveSerializer,
    responses={200: UserResponseSerializer, 400: ErrorResponseSerializer, 404: ErrorResponseSerializer},
)
@api_view(['POST'])
def user_set_active(request):
    """POST /users/setIsActive - Установить флаг активности пользователя"""
    logger.info("user_set_active from %s", request.META.get('REMOTE_ADDR'))
    try:
        data = SetIsActiveSerializer(data=request.data)
        if not data.is_valid():
            return validation_error_response(data.errors)

        user = user_service.set_is_active(
            data.validated_data['user_id'],
            data.validated_data['is_active'],
            deadline=request_deadline(),
        )
        serializer = UserSerializer(user)

        return Response({
            'user': serializer.data
        })

    except ServiceError as e:
        logger.debug("user_set_active failed: %s", e)
        return service_error_response(e)
    except Exception:
        logger.exception("user_set_active failed")
        return server_error_response()


@extend_schema(
    parameters=[OpenApiParameter('user_id', str, required=True)],
    responses={200: UserReviewResponseSerializer, 400: ErrorResponseSerializer, 404: ErrorResponseSerializer},
)
@api_view(['GET'])
def users_get_review(request):
    """GET /users/getReview - Получить PR'ы, где пользователь назначен ревьювером"""
    logger.info("users_get_review from %s", request.META.get('REMOTE_ADDR'))
    try:
        user_id = request.query_params.get('user_id')

        if not user_id:
            return validation_error_response('user_id parameter is required')

        assigned_prs = user_service.get_review_assignments(user_id, deadline=request_deadline())
        serializer = PullRequestShortSerializer(assigned_prs, many=True)

        return Response({
            'user_id': user_id,
            'pull_requests': serializer.data
        })

    except ServiceError as e:
        logger.debug("users_get_review failed: %s", e)
        return service_error_response(e)
    except Exception:
        logger.exception("users_get_review failed")
        return server_error_response()
