from django.test import override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase


class FullWorkflowE2ETest(APITestCase):
    """
    End-to-end
    """

    def test_complete_pr_workflow(self):
        """
        E2E тест: полный workflow создания команды, PR, переназначения и мержа
        """
        # Создаем команду через API
        team_data = {
            "team_name": "backend-team",
            "members": [
                {"user_id": "dev1", "username": "Developer 1", "is_active": True},
                {"user_id": "dev2", "username": "Developer 2", "is_active": True},
                {"user_id": "dev3", "username": "Developer 3", "is_active": True},
                {"user_id": "dev4", "username": "Developer 4", "is_active": True},
            ]
        }
        response = self.client.post(reverse('api:team-add'), team_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['team']['team_name'], 'backend-team')
        self.assertEqual(len(response.data['team']['members']), 4)

        # Проверяем что команда создана через GET API
        response = self.client.get(f"{reverse('api:team-get')}?team_name=backend-team")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['team_name'], 'backend-team')
        self.assertEqual(len(response.data['members']), 4)

        # Создаем PR через API
        pr_data = {
            "pull_request_id": "feature-auth",
            "pull_request_name": "Implement authentication",
            "author_id": "dev1"
        }
        response = self.client.post(reverse('api:pr-create'), pr_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['pr']['pull_request_id'], 'feature-auth')
        self.assertEqual(response.data['pr']['author_id'], 'dev1')
        self.assertEqual(response.data['pr']['status'], 'OPEN')
        self.assertIsNone(response.data['pr']['mergedAt'])

        # Должны быть назначены 2 ревьювера (исключая автора)
        assigned_reviewers = response.data['pr']['assigned_reviewers']
        self.assertEqual(len(assigned_reviewers), 2)
        self.assertNotIn('dev1', assigned_reviewers)  # Автор не должен быть ревьювером

        # Получаем PR для одного из ревьюверов
        reviewer_id = assigned_reviewers[0]
        response = self.client.get(f"{reverse('api:user-get-review')}?user_id={reviewer_id}")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user_id'], reviewer_id)
        self.assertEqual(len(response.data['pull_requests']), 1)
        self.assertEqual(response.data['pull_requests'][0]['pull_request_id'], 'feature-auth')

        # Переназначаем одного ревьювера через API
        reassign_data = {
            "pull_request_id": "feature-auth",
            "old_user_id": reviewer_id
        }
        response = self.client.post(reverse('api:pr-reassign'), reassign_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('replaced_by', response.data)
        new_reviewer = response.data['replaced_by']
        self.assertNotEqual(new_reviewer, reviewer_id)
        self.assertNotEqual(new_reviewer, 'dev1')
        self.assertNotIn(new_reviewer, assigned_reviewers)
        self.assertEqual(len(response.data['pr']['assigned_reviewers']), 2)
        self.assertIn(new_reviewer, response.data['pr']['assigned_reviewers'])

        # Проверяем что у старого ревьювера больше нет этого PR
        response = self.client.get(f"{reverse('api:user-get-review')}?user_id={reviewer_id}")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['pull_requests']), 0)

        # Проверяем что у нового ревьювера появился этот PR
        response = self.client.get(f"{reverse('api:user-get-review')}?user_id={new_reviewer}")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['pull_requests']), 1)
        self.assertEqual(response.data['pull_requests'][0]['pull_request_id'], 'feature-auth')

        # Мержим PR через API
        merge_data = {"pull_request_id": "feature-auth"}
        response = self.client.post(reverse('api:pr-merge'), merge_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pr']['status'], 'MERGED')
        self.assertIsNotNone(response.data['pr']['mergedAt'])
        first_merged_at = response.data['pr']['mergedAt']

        # Пытаемся переназначить после мержа (должно быть запрещено)
        reassign_data = {
            "pull_request_id": "feature-auth",
            "old_user_id": new_reviewer
        }
        response = self.client.post(reverse('api:pr-reassign'), reassign_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error']['code'], 'PR_MERGED')

        # Проверяем идемпотентность мержа
        response = self.client.post(reverse('api:pr-merge'), merge_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pr']['status'], 'MERGED')
        self.assertEqual(response.data['pr']['mergedAt'], first_merged_at)
        self.assertEqual(len(response.data['pr']['assigned_reviewers']), 2)

    def test_user_activation_workflow(self):
        """
        E2E тест: workflow с деактивацией пользователя
        """
        # Создаем команду
        team_data = {
            "team_name": "qa-team",
            "members": [
                {"user_id": "qa1", "username": "QA Engineer 1", "is_active": True},
                {"user_id": "qa2", "username": "QA Engineer 2", "is_active": True},
                {"user_id": "qa3", "username": "QA Engineer 3", "is_active": True},
            ]
        }
        response = self.client.post(reverse('api:team-add'), team_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        # Деактивируем пользователя через API
        deactivate_data = {"user_id": "qa2", "is_active": False}
        response = self.client.post(reverse('api:user-set-active'), deactivate_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['user']['is_active'])
        self.assertEqual(response.data['user']['team_name'], 'qa-team')

        # Создаем PR - деактивированный пользователь не должен быть назначен
        pr_data = {
            "pull_request_id": "test-fix",
            "pull_request_name": "Fix failing tests",
            "author_id": "qa1"
        }
        response = self.client.post(reverse('api:pr-create'), pr_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        # Проверяем что qa2 не назначен ревьювером
        assigned_reviewers = response.data['pr']['assigned_reviewers']
        self.assertEqual(assigned_reviewers, ['qa3'])

        # Активируем пользователя обратно
        activate_data = {"user_id": "qa2", "is_active": True}
        response = self.client.post(reverse('api:user-set-active'), activate_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['user']['is_active'])

        # Создаем еще один PR - теперь qa2 может быть назначен
        pr_data_2 = {
            "pull_request_id": "new-feature",
            "pull_request_name": "Add new feature",
            "author_id": "qa3"
        }
        response = self.client.post(reverse('api:pr-create'), pr_data_2, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(sorted(response.data['pr']['assigned_reviewers']), ['qa1', 'qa2'])

    def test_deactivated_reviewers_leave_no_candidate(self):
        """
        E2E тест: оба ревьювера деактивированы - заменить некем
        """
        team_data = {
            "team_name": "team1",
            "members": [
                {"user_id": f"u{i}", "username": f"user{i}", "is_active": True}
                for i in range(3)
            ]
        }
        self.client.post(reverse('api:team-add'), team_data, format='json')

        pr_data = {"pull_request_id": "pr1", "pull_request_name": "pr1", "author_id": "u0"}
        response = self.client.post(reverse('api:pr-create'), pr_data, format='json')
        assigned_reviewers = response.data['pr']['assigned_reviewers']
        self.assertEqual(sorted(assigned_reviewers), ['u1', 'u2'])

        for user_id in assigned_reviewers:
            response = self.client.post(reverse('api:user-set-active'),
                                        {"user_id": user_id, "is_active": False}, format='json')
            self.assertEqual(response.status_code, status.HTTP_200_OK)

        reassign_data = {"pull_request_id": "pr1", "old_user_id": assigned_reviewers[0]}
        response = self.client.post(reverse('api:pr-reassign'), reassign_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error']['code'], 'NO_CANDIDATE')

        # Назначение не изменилось
        response = self.client.get(f"{reverse('api:user-get-review')}?user_id={assigned_reviewers[0]}")
        self.assertEqual(len(response.data['pull_requests']), 1)

    def test_error_scenarios_workflow(self):
        """
        E2E тест: различные сценарии ошибок
        """

        team_data = {
            "team_name": "mobile-team",
            "members": [
                {"user_id": "m1", "username": "Mobile Dev 1", "is_active": True},
            ]
        }
        response = self.client.post(reverse('api:team-add'), team_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        # Попытка создать PR с несуществующим автором
        pr_data = {
            "pull_request_id": "invalid-pr",
            "pull_request_name": "Invalid PR",
            "author_id": "nonexistent-user"
        }
        response = self.client.post(reverse('api:pr-create'), pr_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error']['code'], 'NOT_FOUND')

        # Попытка создать дубликат PR
        valid_pr_data = {
            "pull_request_id": "valid-pr",
            "pull_request_name": "Valid PR",
            "author_id": "m1"
        }
        response = self.client.post(reverse('api:pr-create'), valid_pr_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        # Попытка создать PR с тем же ID
        response = self.client.post(reverse('api:pr-create'), valid_pr_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error']['code'], 'PR_EXISTS')

        # Попытка создать команду с тем же именем
        response = self.client.post(reverse('api:team-add'), team_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error']['code'], 'TEAM_EXISTS')

        # Пользователь уже состоит в другой команде
        response = self.client.post(reverse('api:team-add'), {
            "team_name": "ios-team",
            "members": [{"user_id": "m1", "username": "Mobile Dev 1", "is_active": True}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error']['code'], 'USER_EXISTS')
        response = self.client.get(f"{reverse('api:team-get')}?team_name=ios-team")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        # Попытка переназначить не назначенного ревьювера
        reassign_data = {
            "pull_request_id": "valid-pr",
            "old_user_id": "m2"
        }
        response = self.client.post(reverse('api:pr-reassign'), reassign_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error']['code'], 'NOT_ASSIGNED')

        # Несуществующие PR и пользователь
        response = self.client.post(reverse('api:pr-merge'), {"pull_request_id": "missing"}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        response = self.client.post(reverse('api:user-set-active'),
                                    {"user_id": "missing", "is_active": True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        response = self.client.get(f"{reverse('api:user-get-review')}?user_id=missing")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_validation_errors(self):
        """
        E2E тест: некорректные запросы
        """
        response = self.client.post(reverse('api:pr-create'), {"pull_request_id": "x"}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['code'], 'VALIDATION_ERROR')
        # message - строка, ошибки по полям лежат в details
        self.assertIsInstance(response.data['error']['message'], str)
        self.assertIn('pull_request_name', response.data['error']['message'])
        self.assertIn('author_id', response.data['error']['details'])

        response = self.client.post(reverse('api:team-add'), {
            "team_name": "broken",
            "members": [{"user_id": "b1"}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('members.0.username', response.data['error']['message'])

        response = self.client.get(reverse('api:team-get'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['message'], 'team_name parameter is required')
        self.assertNotIn('details', response.data['error'])

        response = self.client.post(reverse('api:pr-reassign'), {"pull_request_id": "x"}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get(reverse('api:pr-open-by-reviewers'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_edge_cases_workflow(self):
        """
        E2E тест: граничные случаи
        """
        # Создаем команду с минимальным количеством пользователей
        team_data = {
            "team_name": "small-team",
            "members": [
                {"user_id": "s1", "username": "Solo Developer", "is_active": True},
            ]
        }
        response = self.client.post(reverse('api:team-add'), team_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        # Создаем PR - не должно быть ревьюверов (только автор в команде)
        pr_data = {
            "pull_request_id": "solo-pr",
            "pull_request_name": "Solo PR",
            "author_id": "s1"
        }
        response = self.client.post(reverse('api:pr-create'), pr_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(len(response.data['pr']['assigned_reviewers']), 0)

        # Создаем команду с неактивными пользователями
        team_data_inactive = {
            "team_name": "inactive-team",
            "members": [
                {"user_id": "i1", "username": "Inactive 1", "is_active": False},
                {"user_id": "i2", "username": "Inactive 2", "is_active": False},
                {"user_id": "i3", "username": "Active User", "is_active": True},
            ]
        }
        response = self.client.post(reverse('api:team-add'), team_data_inactive, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        # Создаем PR - должны быть назначены только активные пользователи
        pr_data_inactive = {
            "pull_request_id": "inactive-team-pr",
            "pull_request_name": "PR for inactive team",
            "author_id": "i3"
        }
        response = self.client.post(reverse('api:pr-create'), pr_data_inactive, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        # В команде только один активный пользователь (автор), поэтому ревьюверов быть не должно
        assigned_reviewers = response.data['pr']['assigned_reviewers']
        self.assertEqual(len(assigned_reviewers), 0)

    @override_settings(PRSERVICE_REQUEST_TIMEOUT=-1)
    def test_expired_request_deadline(self):
        """
        E2E тест: истекший дедлайн запроса - 500 и никаких изменений
        """
        team_data = {
            "team_name": "late-team",
            "members": [{"user_id": "l1", "username": "Late", "is_active": True}]
        }
        response = self.client.post(reverse('api:team-add'), team_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data['error']['code'], 'SERVER_ERROR')

        with self.settings(PRSERVICE_REQUEST_TIMEOUT=None):
            response = self.client.get(f"{reverse('api:team-get')}?team_name=late-team")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class MultiplePRE2ETest(APITestCase):
    """
    E2E тесты нескольких PR
    """

    def test_multiple_teams_and_prs(self):
        """
        E2E тест: создание нескольких команд
        """
        # Создаем несколько команд
        teams_data = [
            {
                "team_name": "team-frontend",
                "members": [
                    {"user_id": f"f{i}", "username": f"Frontend Dev {i}", "is_active": True}
                    for i in range(1, 6)  # 5 пользователей
                ]
            },
            {
                "team_name": "team-backend",
                "members": [
                    {"user_id": f"b{i}", "username": f"Backend Dev {i}", "is_active": True}
                    for i in range(1, 6)  # 5 пользователей
                ]
            }
        ]

        for team_data in teams_data:
            response = self.client.post(reverse('api:team-add'), team_data, format='json')
            self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        # Создаем несколько PR для каждой команды
        prs_data = [
            {"pull_request_id": f"pr-frontend-{i}", "pull_request_name": f"Frontend PR {i}", "author_id": "f1"}
            for i in range(1, 4)  # 3 PR
        ] + [
            {"pull_request_id": f"pr-backend-{i}", "pull_request_name": f"Backend PR {i}", "author_id": "b1"}
            for i in range(1, 4)
        ]

        for pr_data in prs_data:
            response = self.client.post(reverse('api:pr-create'), pr_data, format='json')
            self.assertEqual(response.status_code, status.HTTP_201_CREATED)
            # Ревьюверы только из команды автора
            reviewers = response.data['pr']['assigned_reviewers']
            self.assertEqual(len(reviewers), 2)
            prefix = pr_data['author_id'][0]
            self.assertTrue(all(r.startswith(prefix) for r in reviewers))

        # Открытые PR по списку ревьюверов
        query = "user_id=f2&user_id=f3&user_id=f4&user_id=f5"
        response = self.client.get(f"{reverse('api:pr-open-by-reviewers')}?{query}")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        pr_ids = [pr['pull_request_id'] for pr in response.data['pull_requests']]
        self.assertEqual(sorted(pr_ids), ['pr-frontend-1', 'pr-frontend-2', 'pr-frontend-3'])

        self.client.post(reverse('api:pr-merge'), {"pull_request_id": "pr-frontend-1"}, format='json')
        response = self.client.get(f"{reverse('api:pr-open-by-reviewers')}?{query}")
        pr_ids = [pr['pull_request_id'] for pr in response.data['pull_requests']]
        self.assertNotIn('pr-frontend-1', pr_ids)


class HealthCheckTest(APITestCase):
    def test_health(self):
        response = self.client.get(reverse('api:health-check'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'status': 'healthy'})


class OpenApiSchemaTest(APITestCase):
    def test_schema(self):
        """Тест: OpenAPI-схема описывает все маршруты"""
        response = self.client.get(reverse('openapi-schema'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        content = response.content.decode()
        self.assertIn('openapi:', content)
        for route in ('/team/add', '/team/get', '/users/setIsActive', '/users/getReview',
                      '/pullRequest/create', '/pullRequest/merge', '/pullRequest/reassign',
                      '/pullRequest/openByReviewers', '/health'):
            self.assertIn(route, content)

    def test_swagger_ui(self):
        """Тест: страница Swagger UI"""
        self.assertEqual(reverse('openapi-schema'), '/swagger/openapi.yml')

        response = self.client.get(reverse('swagger-ui'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
