from django.db import IntegrityError
from django.test import TestCase, override_settings

from apps.core.academics.models import SchoolClass
from apps.core.schools.models import School

from .models import Student, demo_class_filter
from .services import active_students_in_class, find_demo_class, mark_inactive


class StudentModelTests(TestCase):
    def setUp(self):
        self.school = School.objects.create(name='Student School', code='student_school')
        self.school_class = SchoolClass.objects.create(school=self.school, name='P.4', code='P4')

    def _create_student(self, registration_number='S001', **kwargs):
        fields = {
            'school': self.school,
            'registration_number': registration_number,
            'first_name': 'Ayan',
            'last_name': 'Okello',
            'current_class': self.school_class,
        }
        fields.update(kwargs)
        return Student.objects.create(**fields)

    def test_registration_number_unique_per_school(self):
        self._create_student(registration_number='REG-100')
        with self.assertRaises(IntegrityError):
            self._create_student(registration_number='REG-100')

    def test_same_registration_number_allowed_in_other_school(self):
        self._create_student(registration_number='REG-200')
        other_school = School.objects.create(name='Other School', code='other_school')
        Student.objects.create(school=other_school, registration_number='REG-200', first_name='Nia')
        self.assertEqual(Student.objects.filter(registration_number='REG-200').count(), 2)

    def test_full_name_skips_missing_last_name(self):
        student = self._create_student(last_name='')
        self.assertEqual(student.full_name, 'Ayan')


class DemoClassServiceTests(TestCase):
    def setUp(self):
        self.school = School.objects.create(name='Demo School', code='demo_school')
        self.demo_class = SchoolClass.objects.create(school=self.school, name='Demo Class')
        self.real_class = SchoolClass.objects.create(school=self.school, name='S.1')

    def test_find_demo_class_is_scoped_to_school(self):
        other_school = School.objects.create(name='Other', code='other')
        SchoolClass.objects.create(school=other_school, name='Demo Class')

        self.assertEqual(find_demo_class(self.school), self.demo_class)

    def test_find_demo_class_returns_none_when_absent(self):
        school = School.objects.create(name='No Demo', code='no_demo')
        self.assertIsNone(find_demo_class(school))

    @override_settings(LEDGER_DEMO_CLASS_NAME='Sandbox')
    def test_demo_class_name_follows_settings(self):
        sandbox = SchoolClass.objects.create(school=self.school, name='Sandbox')
        self.assertEqual(find_demo_class(self.school), sandbox)

    def test_active_students_in_class_excludes_inactive_and_other_classes(self):
        active = Student.objects.create(
            school=self.school,
            registration_number='D-1',
            first_name='Test',
            current_class=self.demo_class,
        )
        Student.objects.create(
            school=self.school,
            registration_number='D-2',
            first_name='Old',
            current_class=self.demo_class,
            status=Student.STATUS_INACTIVE,
            is_active=False,
        )
        Student.objects.create(
            school=self.school,
            registration_number='R-1',
            first_name='Real',
            current_class=self.real_class,
        )

        self.assertEqual(list(active_students_in_class(self.demo_class)), [active])

    def test_mark_inactive_only_changes_instance(self):
        student = Student.objects.create(
            school=self.school,
            registration_number='D-3',
            first_name='Test',
            current_class=self.demo_class,
        )

        mark_inactive(student)

        self.assertEqual(student.status, Student.STATUS_INACTIVE)
        self.assertFalse(student.is_active)
        student.refresh_from_db()
        self.assertEqual(student.status, Student.STATUS_ACTIVE)

    def test_demo_class_filter_supports_related_prefix(self):
        Student.objects.create(
            school=self.school,
            registration_number='D-4',
            first_name='Test',
            current_class=self.demo_class,
        )
        Student.objects.create(
            school=self.school,
            registration_number='R-2',
            first_name='Real',
            current_class=self.real_class,
        )

        demo_numbers = list(
            Student.objects.filter(demo_class_filter()).values_list('registration_number', flat=True)
        )
        self.assertEqual(demo_numbers, ['D-4'])
