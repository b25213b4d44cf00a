"""
Репозитории поверх Django ORM.

Каждый метод принимает необязательный дескриптор транзакции tx: запрос
выполняется на его базе и перед выполнением проверяет дедлайн.
Ошибки базы оборачиваются в InternalError, нарушения уникальности при
вставке - в соответствующий AlreadyExistsError.
"""
import functools
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from django.db import DEFAULT_DB_ALIAS, DatabaseError, IntegrityError
from django.utils import timezone

from .exceptions import (
    BadFilterError,
    InternalError,
    NotFoundError,
    PullRequestExistsError,
    ServiceError,
    TeamExistsError,
    UserExistsError,
)
from .models import PullRequest, ReviewerAssignment, Team, User
from .transactions import Transaction

logger = logging.getLogger(__name__)


def wrap_db_errors(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except ServiceError:
            raise
        except DatabaseError as e:
            logger.debug("%s.%s failed: %s", type(self).__name__, method.__name__, e)
            raise InternalError(f"failed to {method.__name__}: {e}") from e
    return wrapper


@dataclass
class UserUpdate:
    """Частичное обновление пользователя: None означает "поле не передано"."""

    username: Optional[str] = None
    team_name: Optional[str] = None
    is_active: Optional[bool] = None

    def as_fields(self) -> dict:
        fields = {}
        if self.username is not None:
            fields['username'] = self.username
        if self.team_name is not None:
            fields['team_id'] = self.team_name
        if self.is_active is not None:
            fields['is_active'] = self.is_active
        return fields


class BaseRepository:
    model = None

    def __init__(self, using: str = DEFAULT_DB_ALIAS):
        self.using = using

    def objects(self, tx: Optional[Transaction] = None, model=None):
        model = model or self.model
        if tx is None:
            return model.objects.using(self.using)
        tx.checkpoint()
        return model.objects.using(tx.using)


class TeamRepository(BaseRepository):
    model = Team

    @wrap_db_errors
    def get(self, name: str, tx: Optional[Transaction] = None) -> Team:
        try:
            return self.objects(tx).get(name=name)
        except Team.DoesNotExist:
            raise NotFoundError.for_entity('team', 'name', name)

    @wrap_db_errors
    def insert(self, team: Team, tx: Optional[Transaction] = None) -> None:
        queryset = self.objects(tx)
        try:
            team.save(using=queryset.db, force_insert=True)
        except IntegrityError as e:
            logger.debug("failed to insert team %s: %s", team.name, e)
            raise TeamExistsError() from e


class UserRepository(BaseRepository):
    model = User

    @wrap_db_errors
    def get_by_id(self, user_id: str, tx: Optional[Transaction] = None) -> User:
        try:
            return self.objects(tx).get(id=user_id)
        except User.DoesNotExist:
            raise NotFoundError.for_entity('user', 'id', user_id)

    @wrap_db_errors
    def get_by_team(self, team_name: str, tx: Optional[Transaction] = None) -> List[User]:
        return list(self.objects(tx).filter(team_id=team_name))

    @wrap_db_errors
    def get_active_by_team(self, team_name: str, tx: Optional[Transaction] = None) -> List[User]:
        return list(self.objects(tx).filter(team_id=team_name, is_active=True))

    @wrap_db_errors
    def insert_many(self, users: Iterable[User], tx: Optional[Transaction] = None) -> None:
        users = list(users)
        if not users:
            return
        try:
            self.objects(tx).bulk_create(users)
        except IntegrityError as e:
            logger.debug("failed to insert users %s: %s", [u.id for u in users], e)
            raise UserExistsError() from e

    @wrap_db_errors
    def update(self, user_id: str, update: UserUpdate, tx: Optional[Transaction] = None) -> None:
        fields = update.as_fields()
        if not fields:
            raise BadFilterError('username or team_name or is_active is required')
        updated = self.objects(tx).filter(id=user_id).update(**fields)
        if updated == 0:
            raise NotFoundError.for_entity('user', 'id', user_id)


class PullRequestRepository(BaseRepository):
    model = PullRequest

    @wrap_db_errors
    def get_by_id(self, pr_id: str, tx: Optional[Transaction] = None) -> PullRequest:
        try:
            return self.objects(tx).select_related('author').get(id=pr_id)
        except PullRequest.DoesNotExist:
            raise NotFoundError.for_entity('pull request', 'id', pr_id)

    @wrap_db_errors
    def exists(self, pr_id: str, tx: Optional[Transaction] = None) -> bool:
        return self.objects(tx).filter(id=pr_id).exists()

    @wrap_db_errors
    def insert(self, pr: PullRequest, tx: Optional[Transaction] = None) -> None:
        queryset = self.objects(tx)
        try:
            pr.save(using=queryset.db, force_insert=True)
        except IntegrityError as e:
            logger.debug("failed to insert pull request %s: %s", pr.id, e)
            raise PullRequestExistsError() from e

    @wrap_db_errors
    def update_status(self, pr_id: str, status: str, tx: Optional[Transaction] = None) -> bool:
        """
        Атомарно переводит PR в статус status.

        UPDATE выполняется только если статус еще другой, поэтому
        параллельные мержи не перезаписывают время первого мержа.
        Возвращает True, если строка была изменена.
        """
        fields = {'status': status}
        if status == PullRequest.Status.MERGED:
            fields['merged_at'] = timezone.now()
        updated = self.objects(tx).filter(id=pr_id).exclude(status=status).update(**fields)
        if updated:
            return True
        if not self.objects(tx).filter(id=pr_id).exists():
            raise NotFoundError.for_entity('pull request', 'id', pr_id)
        return False

    @wrap_db_errors
    def get_open_by_reviewers(self, reviewer_ids: Iterable[str],
                              tx: Optional[Transaction] = None) -> List[PullRequest]:
        return list(
            self.objects(tx)
            .filter(status=PullRequest.Status.OPEN, assignments__user_id__in=list(reviewer_ids))
            .select_related('author')
            .distinct()
            .order_by('created_at', 'id')
        )


class ReviewerRepository(BaseRepository):
    model = ReviewerAssignment

    @wrap_db_errors
    def get_reviewers_of(self, pr_id: str, tx: Optional[Transaction] = None) -> List[User]:
        assignments = self.objects(tx).filter(pull_request_id=pr_id).select_related('user').order_by('id')
        return [assignment.user for assignment in assignments]

    @wrap_db_errors
    def get_assignments_of(self, user_id: str, tx: Optional[Transaction] = None) -> List[PullRequest]:
        return list(
            self.objects(tx, model=PullRequest)
            .filter(assignments__user_id=user_id)
            .select_related('author')
            .order_by('created_at', 'id')
        )

    @wrap_db_errors
    def add(self, pr_id: str, user_id: str, tx: Optional[Transaction] = None) -> None:
        self.objects(tx).create(pull_request_id=pr_id, user_id=user_id)

    @wrap_db_errors
    def remove(self, pr_id: str, user_id: str, tx: Optional[Transaction] = None) -> None:
        deleted, _ = self.objects(tx).filter(pull_request_id=pr_id, user_id=user_id).delete()
        if deleted == 0:
            raise NotFoundError.for_entity('reviewer assignment', 'pr and user', f"{pr_id}, {user_id}")
