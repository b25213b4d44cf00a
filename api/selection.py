"""
Алгоритмы выбора ревьюверов.

Функции не ходят в базу: на вход получают уже загруженных активных
пользователей и источник случайности rng (random.Random или совместимый
объект с методами randrange и shuffle).
"""
from typing import Collection, Iterable, List, Optional

from .models import User

MAX_REVIEWERS = 2


def sample_reviewers(candidates: Iterable[User], author_id: str, rng,
                     limit: int = MAX_REVIEWERS) -> List[User]:
    """
    Выбирает до limit ревьюверов равновероятно за один проход (reservoir sampling).

    Автор пропускается. Первые limit подходящих кандидатов заполняют резервуар,
    i-й кандидат после них (нумерация с 1) замещает слот j из [0, i), если j < limit.
    """
    reservoir = []
    seen = 0
    for user in candidates:
        if user.id == author_id:
            continue
        seen += 1
        if len(reservoir) < limit:
            reservoir.append(user)
            continue
        j = rng.randrange(seen)
        if j < limit:
            reservoir[j] = user
    return reservoir


def pick_replacement(candidates: Iterable[User], excluded_ids: Collection[str], rng) -> Optional[User]:
    # Перемешиваем пул и берем первого, кого нельзя исключить
    pool = list(candidates)
    rng.shuffle(pool)
    for user in pool:
        if user.id not in excluded_ids:
            return user
    return None
