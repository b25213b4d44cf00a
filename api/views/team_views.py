import logging

from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response
from drf_spectacular.utils import OpenApiParameter, extend_schema

from ..exceptions import ServiceError
from ..serializers import ErrorResponseSerializer, TeamAddSerializer, TeamResponseSerializer, TeamSerializer
from ..services import TeamService
from .utils import (
    request_deadline,
    server_error_response,
    service_error_response,
    validation_error_response,
)

logger = logging.getLogger(__name__)

team_service = TeamService()


@extend_schema(
    request=TeamAddSerializer,
    responses={201: TeamResponseSerializer, 400: ErrorResponseSerializer, 409: ErrorResponseSerializer},
)
@api_view(['POST'])
def team_add(request):
    """POST /team/add - Создать команду с участниками"""
    logger.info("team_add from %s", request.META.get('REMOTE_ADDR'))
    try:
        data = TeamAddSerializer(data=request.data)
        if not data.is_valid():
            return validation_error_response(data.errors)

        team, members = team_service.create_team(
            data.validated_data['team_name'],
            data.validated_data['members'],
            deadline=request_deadline(),
        )
        serializer = TeamSerializer({'team_name': team.name, 'members': members})

        return Response({
            'team': serializer.data
        }, status=status.HTTP_201_CREATED)

    except ServiceError as e:
        logger.debug("team_add failed: %s", e)
        return service_error_response(e)
    except Exception:
        logger.exception("team_add failed")
        return server_error_response()


@extend_schema(
    parameters=[OpenApiParameter('team_name', str, required=True)],
    responses={200: TeamSerializer, 400: ErrorResponseSerializer, 404: ErrorResponseSerializer},
)
@api_view(['GET'])
def team_get(request):
    """GET /team/get - Получить команду с участниками"""
    logger.info("team_get from %s", request.META.get('REMOTE_ADDR'))
    try:
        team_name = request.query_params.get('team_name')

        if not team_name:
            return validation_error_response('team_name parameter is required')

        team, members = team_service.get_team(team_name, deadline=request_deadline())
        serializer = TeamSerializer({'team_name': team.name, 'members': members})

        return Response(serializer.data)

    except ServiceError as e:
        logger.debug("team_get failed: %s", e)
        return service_error_response(e)
    except Exception:
        logger.exception("team_get failed")
        return server_error_response()
