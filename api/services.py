import logging
import random
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from .exceptions import (
    MergedConflictError,
    NoCandidateError,
    NotAssignedError,
    NotFoundError,
    PullRequestExistsError,
    TeamExistsError,
)
from .models import PullRequest, Team, User
from .repositories import (
    PullRequestRepository,
    ReviewerRepository,
    TeamRepository,
    UserRepository,
    UserUpdate,
)
from .selection import pick_replacement, sample_reviewers
from .transactions import TransactionManager, check_deadline

logger = logging.getLogger(__name__)


class TeamService:
    """
    Сервис для управления командами и пользователями
    """

    def __init__(self, teams: TeamRepository = None, users: UserRepository = None,
                 transactions: TransactionManager = None):
        self.teams = teams or TeamRepository()
        self.users = users or UserRepository()
        self.transactions = transactions or TransactionManager()

    def create_team(self, team_name: str, members: list,
                    deadline: Optional[datetime] = None) -> Tuple[Team, List[User]]:
        """
        Создает команду вместе с пользователями.

        Команда и все участники вставляются в одной транзакции: если хотя бы
        один user_id уже занят, не сохраняется ничего.
        """
        # Проверяем, существует ли команда
        try:
            self.teams.get(team_name)
        except NotFoundError:
            pass
        else:
            logger.debug("create_team failed: team %s already exists", team_name)
            raise TeamExistsError()

        team = Team(name=team_name)
        users = [
            User(
                id=member['user_id'],
                username=member['username'],
                is_active=member['is_active'],
                team=team,
            )
            for member in members
        ]
        with self.transactions.begin(deadline) as tx:
            self.teams.insert(team, tx=tx)
            self.users.insert_many(users, tx=tx)

        logger.info("team %s created with %d members", team_name, len(users))
        return team, users

    def get_team(self, team_name: str, deadline: Optional[datetime] = None) -> Tuple[Team, List[User]]:
        check_deadline(deadline)
        team = self.teams.get(team_name)
        # Участников всегда читаем заново, без кеша
        return team, self.users.get_by_team(team.name)


class UserService:
    """
    Сервис для управления пользователями
    """

    def __init__(self, users: UserRepository = None, reviewers: ReviewerRepository = None):
        self.users = users or UserRepository()
        self.reviewers = reviewers or ReviewerRepository()

    def set_is_active(self, user_id: str, is_active: bool, deadline: Optional[datetime] = None) -> User:
        check_deadline(deadline)
        user = self.users.get_by_id(user_id)
        self.users.update(user.id, UserUpdate(is_active=is_active))
        user.is_active = is_active
        logger.info("user %s is_active set to %s", user_id, is_active)
        return user

    def get_review_assignments(self, user_id: str, deadline: Optional[datetime] = None) -> List[PullRequest]:
        """PR'ы в любом статусе, где пользователь сейчас назначен ревьювером"""
        check_deadline(deadline)
        user = self.users.get_by_id(user_id)
        return self.reviewers.get_assignments_of(user.id)


class PullRequestService:
    """
    Сервис для управления Pull Request'ами

    rng - источник случайности для выбора ревьюверов, в тестах подменяется
    на random.Random с фиксированным seed.
    """

    def __init__(self, pull_requests: PullRequestRepository = None, users: UserRepository = None,
                 reviewers: ReviewerRepository = None, transactions: TransactionManager = None,
                 rng: random.Random = None):
        self.pull_requests = pull_requests or PullRequestRepository()
        self.users = users or UserRepository()
        self.reviewers = reviewers or ReviewerRepository()
        self.transactions = transactions or TransactionManager()
        self.rng = rng or random.Random()

    def create_pull_request(self, pr_id: str, pr_name: str, author_id: str,
                            deadline: Optional[datetime] = None) -> PullRequest:
        # Проверяем, существует ли PR
        if self.pull_requests.exists(pr_id):
            logger.debug("create_pull_request failed: %s already exists", pr_id)
            raise PullRequestExistsError()

        pr = PullRequest(id=pr_id, name=pr_name, author_id=author_id, status=PullRequest.Status.OPEN)
        with self.transactions.begin(deadline) as tx:
            self.pull_requests.insert(pr, tx=tx)

            author = self.users.get_by_id(author_id, tx=tx)
            active_users = self.users.get_active_by_team(author.team_id, tx=tx)

            # Случайным образом выбираем до 2 ревьюверов
            selected = sample_reviewers(active_users, author.id, self.rng)
            for reviewer in selected:
                self.reviewers.add(pr.id, reviewer.id, tx=tx)

        pr.author = author
        logger.info("pull request %s created, reviewers: %s", pr_id, [r.id for r in selected])
        return pr

    def merge_pull_request(self, pr_id: str, deadline: Optional[datetime] = None) -> PullRequest:
        """
        Переводит PR в MERGED.

        Повторный мерж ничего не меняет и возвращает исходное время мержа.
        """
        check_deadline(deadline)
        pr = self.pull_requests.get_by_id(pr_id)
        if pr.is_merged:
            return pr

        if self.pull_requests.update_status(pr.id, PullRequest.Status.MERGED):
            logger.info("pull request %s merged", pr_id)
        # Перечитываем строку: время мержа берем из базы, даже если нас опередили
        return self.pull_requests.get_by_id(pr_id)

    def reassign_reviewer(self, pr_id: str, old_reviewer_id: str,
                          deadline: Optional[datetime] = None) -> Tuple[PullRequest, str]:
        check_deadline(deadline)
        pr = self.pull_requests.get_by_id(pr_id)

        # Проверяем доменные правила
        if pr.is_merged:
            logger.debug("reassign_reviewer failed: %s is merged", pr_id)
            raise MergedConflictError()

        with self.transactions.begin(deadline) as tx:
            try:
                self.reviewers.remove(pr.id, old_reviewer_id, tx=tx)
            except NotFoundError:
                logger.debug("reassign_reviewer failed: %s is not a reviewer of %s", old_reviewer_id, pr_id)
                raise NotAssignedError()

            # Кандидатов ищем в команде заменяемого ревьювера, а не автора
            old_reviewer = self.users.get_by_id(old_reviewer_id, tx=tx)
            active_users = self.users.get_active_by_team(old_reviewer.team_id, tx=tx)
            if not active_users:
                raise NoCandidateError()

            excluded = {old_reviewer_id, pr.author_id}
            excluded.update(user.id for user in self.reviewers.get_reviewers_of(pr.id, tx=tx))
            new_reviewer = pick_replacement(active_users, excluded, self.rng)
            if new_reviewer is None:
                logger.debug("reassign_reviewer failed: no candidate for %s in %s", pr_id, old_reviewer.team_id)
                raise NoCandidateError()

            self.reviewers.add(pr.id, new_reviewer.id, tx=tx)

        logger.info("pull request %s: reviewer %s replaced by %s", pr_id, old_reviewer_id, new_reviewer.id)
        return pr, new_reviewer.id

    def get_open_by_reviewers(self, reviewer_ids: Iterable[str],
                              deadline: Optional[datetime] = None) -> List[PullRequest]:
        check_deadline(deadline)
        return self.pull_requests.get_open_by_reviewers(reviewer_ids)
