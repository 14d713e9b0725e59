from django.db import models

from apps.core.schools.models import School
from apps.core.utils.managers import SchoolManager


class SchoolClass(models.Model):
    school = models.ForeignKey(
        School,
        on_delete=models.CASCADE,
        related_name='classes',
    )
    objects = SchoolManager()

    name = models.CharField(max_length=50)  # e.g. P.1, S.4, Demo Class
    code = models.CharField(max_length=20, blank=True)
    display_order = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ['display_order', 'name', 'id']
        constraints = [
            models.UniqueConstraint(
                fields=['school', 'name'],
                name='unique_class_name_per_school',
            ),
        ]
        indexes = [
            models.Index(fields=['school', 'is_active'], name='class_school_active_idx'),
        ]

    def __str__(self):
        return f"{self.name} ({self.school.code})"
