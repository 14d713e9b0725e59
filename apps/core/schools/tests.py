from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from django.test import RequestFactory, TestCase

from apps.core.schools.models import School
from apps.core.schools.services import get_active_school, resolve_school_for_request


class SchoolCodeTests(TestCase):
    def test_code_is_derived_from_name_and_kept_unique(self):
        first = School.objects.create(name='Kampala Hill School')
        second = School.objects.create(name='Kampala Hill School')

        self.assertEqual(first.code, 'kampala_hill_school')
        self.assertEqual(second.code, 'kampala_hill_school_1')

    def test_explicit_code_is_normalized(self):
        school = School.objects.create(name='Lakeside', code='  LakeSide ')

        self.assertEqual(school.code, 'lakeside')


class TenantResolutionTests(TestCase):
    def setUp(self):
        user_model = get_user_model()
        self.factory = RequestFactory()
        self.school = School.objects.create(name='Lakeside Primary', code='lakeside')
        self.other_school = School.objects.create(name='Hillside Primary', code='hillside')
        self.accountant = user_model.objects.create_user(
            username='lakeside_accountant',
            password='pass12345',
            role='accountant',
            school=self.school,
        )
        self.superadmin = user_model.objects.create_superuser('platform', 'platform@example.com', 'pass12345')

    def _request(self, user, path='/finance/ledger/trial-balance/', **extra):
        request = self.factory.get(path, **extra)
        request.user = user
        return request

    def test_anonymous_request_has_no_school(self):
        self.assertIsNone(resolve_school_for_request(self._request(AnonymousUser())))

    def test_staff_user_is_pinned_to_own_school(self):
        request = self._request(self.accountant, '/finance/ledger/trial-balance/?school=hillside')

        self.assertEqual(resolve_school_for_request(request), self.school)

    def test_inactive_school_is_not_resolved(self):
        self.school.is_active = False
        self.school.save(update_fields=['is_active'])

        self.assertIsNone(resolve_school_for_request(self._request(self.accountant)))
        self.assertIsNone(get_active_school('lakeside'))

    def test_superadmin_selects_school_by_header(self):
        request = self._request(self.superadmin, HTTP_X_SCHOOL_CODE='Hillside')

        self.assertEqual(resolve_school_for_request(request), self.other_school)

    def test_superadmin_selects_school_by_query_parameter(self):
        request = self._request(self.superadmin, '/finance/ledger/trial-balance/?school=lakeside')

        self.assertEqual(resolve_school_for_request(request), self.school)

    def test_superadmin_without_selection_has_no_school(self):
        self.assertIsNone(resolve_school_for_request(self._request(self.superadmin)))
