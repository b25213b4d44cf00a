"""
Ошибки сервисного слоя.

Каждый класс соответствует одному виду отказа; code уходит клиенту как есть,
HTTP статус подбирается в слое представлений.
"""
from django.core.exceptions import ObjectDoesNotExist


class ServiceError(Exception):
    """Базовая ошибка сервисного слоя"""

    code = 'SERVER_ERROR'
    default_message = 'internal error'

    def __init__(self, message: str = None, code: str = None):
        self.message = message or self.default_message
        if code is not None:
            self.code = code
        super().__init__(self.message)


class NotFoundError(ServiceError, ObjectDoesNotExist):
    code = 'NOT_FOUND'
    default_message = 'resource not found'

    @classmethod
    def for_entity(cls, entity: str, field: str, value) -> 'NotFoundError':
        return cls(f"{entity} with {field} '{value}' not found")


class AlreadyExistsError(ServiceError):
    code = 'ALREADY_EXISTS'
    default_message = 'already exists'


class TeamExistsError(AlreadyExistsError):
    code = 'TEAM_EXISTS'
    default_message = 'team_name already exists'


class PullRequestExistsError(AlreadyExistsError):
    code = 'PR_EXISTS'
    default_message = 'PR id already exists'


class UserExistsError(AlreadyExistsError):
    code = 'USER_EXISTS'
    default_message = 'user_id already exists'


class BadFilterError(ServiceError):
    code = 'BAD_REQUEST'
    default_message = 'bad filter in request'


class NotAssignedError(ServiceError):
    code = 'NOT_ASSIGNED'
    default_message = 'reviewer is not assigned to this PR'


class NoCandidateError(ServiceError):
    code = 'NO_CANDIDATE'
    default_message = 'no active replacement candidate in team'


class MergedConflictError(ServiceError):
    code = 'PR_MERGED'
    default_message = 'cannot reassign on merged PR'


class InternalError(ServiceError):
    pass


class OperationCancelled(InternalError):
    default_message = 'operation deadline exceeded'
