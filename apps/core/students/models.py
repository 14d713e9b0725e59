from django.conf import settings
from django.db import models
from django.db.models import Q

from apps.core.academics.models import SchoolClass
from apps.core.schools.models import School
from apps.core.utils.managers import SchoolManager


class Student(models.Model):
    STATUS_ACTIVE = 'active'
    STATUS_INACTIVE = 'inactive'
    STATUS_TRANSFERRED = 'transferred'
    STATUS_ALUMNI = 'alumni'
    STATUS_CHOICES = (
        (STATUS_ACTIVE, 'Active'),
        (STATUS_INACTIVE, 'Inactive'),
        (STATUS_TRANSFERRED, 'Transferred'),
        (STATUS_ALUMNI, 'Alumni'),
    )

    school = models.ForeignKey(School, on_delete=models.CASCADE, related_name='students')
    objects = SchoolManager()

    registration_number = models.CharField(max_length=50)
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100, blank=True)
    current_class = models.ForeignKey(
        SchoolClass,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='students',
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_ACTIVE)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['registration_number', 'id']
        constraints = [
            models.UniqueConstraint(
                fields=['school', 'registration_number'],
                name='unique_student_registration_per_school',
            ),
        ]
        indexes = [
            models.Index(fields=['school', 'current_class', 'status'], name='student_school_class_idx'),
        ]

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def __str__(self):
        return f"{self.registration_number} - {self.full_name}"


def demo_class_name():
    return getattr(settings, 'LEDGER_DEMO_CLASS_NAME', 'Demo Class')


def demo_class_filter(prefix=''):
    return Q(**{f'{prefix}current_class__name': demo_class_name()})
