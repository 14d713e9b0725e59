from unittest import mock

from django.contrib.auth.models import AnonymousUser
from django.db import DatabaseError
from django.http import JsonResponse
from django.test import RequestFactory, TestCase

from apps.core.schools.models import School

from .audit import log_audit_event
from .decorators import role_required
from .models import AuditLog, User


@role_required(User.FINANCE_ROLES)
def _finance_view(request):
    return JsonResponse({'school': request.current_school.code})


class UserModelTests(TestCase):
    def test_non_superadmin_requires_school(self):
        with self.assertRaises(ValueError):
            User.objects.create_user(username='orphan', password='pass12345', role=User.ROLE_ACCOUNTANT)

    def test_superuser_is_platform_admin_without_school(self):
        school = School.objects.create(name='Any School')
        admin = User.objects.create_superuser('root', 'root@example.com', 'pass12345', school=school)

        self.assertEqual(admin.role, User.ROLE_SUPERADMIN)
        self.assertIsNone(admin.school)
        self.assertTrue(admin.is_platform_admin)


class RoleRequiredTests(TestCase):
    def setUp(self):
        self.factory = RequestFactory()
        self.school = School.objects.create(name='Gate School', code='gate')

    def _request(self, user, school=None):
        request = self.factory.get('/finance/ledger/trial-balance/')
        request.user = user
        request.current_school = school
        return request

    def test_anonymous_user_is_sent_to_login(self):
        response = _finance_view(self._request(AnonymousUser()))

        self.assertEqual(response.status_code, 302)

    def test_wrong_role_is_forbidden(self):
        teacher = User.objects.create_user(username='gate_teacher', password='x', role=User.ROLE_TEACHER, school=self.school)

        response = _finance_view(self._request(teacher, self.school))

        self.assertEqual(response.status_code, 403)

    def test_finance_role_with_school_passes(self):
        admin = User.objects.create_user(username='gate_admin', password='x', role=User.ROLE_SCHOOLADMIN, school=self.school)

        response = _finance_view(self._request(admin, self.school))

        self.assertEqual(response.status_code, 200)

    def test_missing_tenant_is_forbidden(self):
        accountant = User.objects.create_user(
            username='gate_accountant',
            password='x',
            role=User.ROLE_ACCOUNTANT,
            school=self.school,
        )

        response = _finance_view(self._request(accountant, None))

        self.assertEqual(response.status_code, 403)


class AuditLogTests(TestCase):
    def setUp(self):
        self.factory = RequestFactory()
        self.school = School.objects.create(name='Audit School', code='audit')
        self.user = User.objects.create_user(
            username='audit_accountant',
            password='x',
            role=User.ROLE_ACCOUNTANT,
            school=self.school,
        )

    def test_event_records_request_details(self):
        request = self.factory.post('/finance/ledger/backfill/', HTTP_X_FORWARDED_FOR='10.0.0.7, 10.0.0.1')
        request.user = self.user

        log = log_audit_event(request, action=AuditLog.ACTION_LEDGER_BACKFILL, details='Backfill complete.')

        self.assertEqual(log.school, self.school)
        self.assertEqual(log.method, 'POST')
        self.assertEqual(log.path, '/finance/ledger/backfill/')
        self.assertEqual(log.ip_address, '10.0.0.7')

    def test_write_failure_does_not_break_caller(self):
        request = self.factory.post('/finance/ledger/backfill/')
        request.user = self.user

        with mock.patch.object(AuditLog.objects, 'create', side_effect=DatabaseError('locked')):
            self.assertIsNone(log_audit_event(request, action=AuditLog.ACTION_LEDGER_BACKFILL))
