import logging

from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response
from drf_spectacular.utils import OpenApiParameter, extend_schema

from ..exceptions import ServiceError
from ..serializers import (
    ErrorResponseSerializer,
    OpenByReviewersResponseSerializer,
    PullRequestCreateSerializer,
    PullRequestMergeSerializer,
    PullRequestReassignResponseSerializer,
    PullRequestReassignSerializer,
    PullRequestResponseSerializer,
    PullRequestSerializer,
    PullRequestShortSerializer,
)
from ..services import PullRequestService
from .utils import (
    request_deadline,
    server_error_response,
    service_error_response,
    validation_error_response,
)

logger = logging.getLogger(__name__)

pull_request_service = PullRequestService()


@extend_schema(
    request=PullRequestCreateSerializer,
    responses={201: PullRequestResponseSerializer, 400: ErrorResponseSerializer,
               404: ErrorResponseSerializer, 409: ErrorResponseSerializer},
)
@api_view(['POST'])
def pullrequest_create(request):
    """POST /pullRequest/create - Создать PR и назначить ревьюверов"""
    logger.info("pullrequest_create from %s", request.META.get('REMOTE_ADDR'))
    try:
        data = PullRequestCreateSerializer(data=request.data)
        if not data.is_valid():
            return validation_error_response(data.errors)

        pr = pull_request_service.create_pull_request(
            data.validated_data['pull_request_id'],
            data.validated_data['pull_request_name'],
            data.validated_data['author_id'],
            deadline=request_deadline(),
        )
        serializer = PullRequestSerializer(pr)

        return Response({
            'pr': serializer.data
        }, status=status.HTTP_201_CREATED)

    except ServiceError as e:
        logger.debug("pullrequest_create failed: %s", e)
        return service_error_response(e)
    except Exception:
        logger.exception("pullrequest_create failed")
        return server_error_response()


@extend_schema(
    request=PullRequestMergeSerializer,
    responses={200: PullRequestResponseSerializer, 400: ErrorResponseSerializer, 404: ErrorResponseSerializer},
)
@api_view(['POST'])
def pullrequest_merge(request):
    """POST /pullRequest/merge - Пометить PR как MERGED"""
    logger.info("pullrequest_merge from %s", request.META.get('REMOTE_ADDR'))
    try:
        data = PullRequestMergeSerializer(data=request.data)
        if not data.is_valid():
            return validation_error_response(data.errors)

        pr = pull_request_service.merge_pull_request(
            data.validated_data['pull_request_id'],
            deadline=request_deadline(),
        )
        serializer = PullRequestSerializer(pr)

        return Response({
            'pr': serializer.data
        })

    except ServiceError as e:
        logger.debug("pullrequest_merge failed: %s", e)
        return service_error_response(e)
    except Exception:
        logger.exception("pullrequest_merge failed")
        return server_error_response()


@extend_schema(
    request=PullRequestReassignSerializer,
    responses={200: PullRequestReassignResponseSerializer, 400: ErrorResponseSerializer,
               404: ErrorResponseSerializer, 409: ErrorResponseSerializer},
)
@api_view(['POST'])
def pullrequest_reassign(request):
    """POST /pullRequest/reassign - Переназначить ревьювера"""
    logger.info("pullrequest_reassign from %s", request.META.get('REMOTE_ADDR'))
    try:
        data = PullRequestReassignSerializer(data=request.data)
        if not data.is_valid():
            return validation_error_response(data.errors)

        pr, replaced_by = pull_request_service.reassign_reviewer(
            data.validated_data['pull_request_id'],
            data.validated_data['old_user_id'],
            deadline=request_deadline(),
        )
        serializer = PullRequestSerializer(pr)

        return Response({
            'pr': serializer.data,
            'replaced_by': replaced_by
        })

    except ServiceError as e:
        logger.debug("pullrequest_reassign failed: %s", e)
        return service_error_response(e)
    except Exception:
        logger.exception("pullrequest_reassign failed")
        return server_error_response()


@extend_schema(
    parameters=[OpenApiParameter('user_id', str, required=True, many=True, explode=True)],
    responses={200: OpenByReviewersResponseSerializer, 400: ErrorResponseSerializer},
)
@api_view(['GET'])
def pullrequest_open_by_reviewers(request):
    """GET /pullRequest/openByReviewers - Открытые PR'ы, где ревьювером назначен любой из user_id"""
    logger.info("pullrequest_open_by_reviewers from %s", request.META.get('REMOTE_ADDR'))
    try:
        user_ids = request.query_params.getlist('user_id')

        if not user_ids:
            return validation_error_response('user_id parameter is required')

        prs = pull_request_service.get_open_by_reviewers(user_ids, deadline=request_deadline())
        serializer = PullRequestShortSerializer(prs, many=True)

        return Response({
            'user_ids': user_ids,
            'pull_requests': serializer.data
        })

    except ServiceError as e:
        logger.debug("pullrequest_open_by_reviewers failed: %s", e)
        return service_error_response(e)
    except Exception:
        logger.exception("pullrequest_open_by_reviewers failed")
        return server_error_response()
