from __future__ import annotations

from apps.core.academics.models import SchoolClass

from .models import Student, demo_class_name


def find_demo_class(school) -> SchoolClass | None:
    """The placeholder class whose records are kept out of financial reports."""
    return SchoolClass.objects.for_school(school).filter(name=demo_class_name()).first()


def active_students_in_class(school_class: SchoolClass):
    return Student.objects.filter(
        school=school_class.school,
        current_class=school_class,
        status=Student.STATUS_ACTIVE,
    ).order_by('id')


def mark_inactive(student: Student) -> Student:
    """Flip a student to inactive in memory; callers persist in batches."""
    student.status = Student.STATUS_INACTIVE
    student.is_active = False
    return student
