"""
Явный дескриптор транзакции поверх django.db.transaction.atomic.

Сервис открывает транзакцию через TransactionManager.begin(), передает
дескриптор во все вызовы репозиториев и освобождает его через commit()
или rollback(). При использовании как контекстного менеджера транзакция
фиксируется при нормальном выходе и откатывается при любом исключении.
"""
import logging
from datetime import datetime
from typing import Optional

from django.db import DEFAULT_DB_ALIAS, DatabaseError, transaction
from django.utils import timezone

from .exceptions import InternalError, OperationCancelled

logger = logging.getLogger(__name__)


def check_deadline(deadline: Optional[datetime]) -> None:
    if deadline is None:
        return
    # наивный дедлайн считаем заданным в текущей временной зоне
    if timezone.is_naive(deadline):
        deadline = timezone.make_aware(deadline)
    if timezone.now() >= deadline:
        raise OperationCancelled()


class Transaction:
    def __init__(self, using: str = DEFAULT_DB_ALIAS, deadline: Optional[datetime] = None):
        self.using = using
        self.deadline = deadline
        self._atomic = None

    @property
    def active(self) -> bool:
        return self._atomic is not None

    def _begin(self) -> 'Transaction':
        atomic = transaction.atomic(using=self.using)
        try:
            atomic.__enter__()
        except DatabaseError as e:
            raise InternalError(f"error begin transaction: {e}") from e
        self._atomic = atomic
        return self

    def checkpoint(self) -> None:
        check_deadline(self.deadline)

    def commit(self) -> None:
        if self._atomic is None:
            return
        atomic, self._atomic = self._atomic, None
        try:
            atomic.__exit__(None, None, None)
        except DatabaseError as e:
            logger.debug("commit failed on %s: %s", self.using, e)
            raise InternalError(f"error commit transaction: {e}") from e

    def rollback(self) -> None:
        if self._atomic is None:
            return
        atomic, self._atomic = self._atomic, None
        try:
            transaction.set_rollback(True, using=self.using)
            atomic.__exit__(None, None, None)
        except DatabaseError as e:
            logger.debug("rollback failed on %s: %s", self.using, e)
            raise InternalError(f"error rollback transaction: {e}") from e

    def __enter__(self) -> 'Transaction':
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.commit()
        else:
            self.rollback()
        return False


class TransactionManager:
    def __init__(self, using: str = DEFAULT_DB_ALIAS):
        self.using = using

    def begin(self, deadline: Optional[datetime] = None) -> Transaction:
        check_deadline(deadline)
        return Transaction(using=self.using, deadline=deadline)._begin()
