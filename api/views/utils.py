import logging
from datetime import timedelta

from django.conf import settings
from django.utils import timezone
from rest_framework import status
from rest_framework.response import Response

from ..exceptions import (
    AlreadyExistsError,
    BadFilterError,
    MergedConflictError,
    NoCandidateError,
    NotAssignedError,
    NotFoundError,
    ServiceError,
)

logger = logging.getLogger(__name__)

ERROR_STATUSES = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (AlreadyExistsError, status.HTTP_409_CONFLICT),
    (NotAssignedError, status.HTTP_409_CONFLICT),
    (NoCandidateError, status.HTTP_409_CONFLICT),
    (MergedConflictError, status.HTTP_409_CONFLICT),
    (BadFilterError, status.HTTP_400_BAD_REQUEST),
]


def request_deadline():
    timeout = getattr(settings, 'PRSERVICE_REQUEST_TIMEOUT', None)
    if not timeout:
        return None
    return timezone.now() + timedelta(seconds=timeout)


def error_response(code, message, http_status, details=None):
    error = {
        'code': code,
        'message': message
    }
    if details is not None:
        error['details'] = details
    return Response({'error': error}, status=http_status)


def flatten_errors(errors, path=''):
    """
    Ошибки сериализатора в виде списка строк "поле: сообщение".

    Вложенные поля склеиваются через точку: members.0.username
    """
    if isinstance(errors, dict):
        lines = []
        for field, value in errors.items():
            lines.extend(flatten_errors(value, f"{path}.{field}" if path else str(field)))
        return lines
    if isinstance(errors, list):
        lines = []
        for index, item in enumerate(errors):
            if isinstance(item, (dict, list)):
                lines.extend(flatten_errors(item, f"{path}.{index}" if path else str(index)))
            else:
                lines.append(f"{path}: {item}" if path else str(item))
        return lines
    return [f"{path}: {errors}" if path else str(errors)]


def validation_error_response(errors):
    if isinstance(errors, str):
        return error_response('VALIDATION_ERROR', errors, status.HTTP_400_BAD_REQUEST)
    return error_response('VALIDATION_ERROR', '; '.join(flatten_errors(errors)),
                          status.HTTP_400_BAD_REQUEST, details=errors)


def service_error_response(exc: ServiceError):
    for error_class, http_status in ERROR_STATUSES:
        if isinstance(exc, error_class):
            return error_response(exc.code, exc.message, http_status)
    logger.error("internal error: %s", exc)
    return server_error_response()


def server_error_response():
    return error_response('SERVER_ERROR', 'Internal server error', status.HTTP_500_INTERNAL_SERVER_ERROR)
