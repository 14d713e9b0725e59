from django.db import models
from django.utils.text import slugify


class School(models.Model):
    """A tenant. Every ledger row hangs off exactly one school."""

    name = models.CharField(max_length=255)
    code = models.CharField(max_length=40, unique=True, null=True, blank=True)
    address = models.TextField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    email = models.EmailField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['name']
        indexes = [
            models.Index(fields=['is_active'], name='school_is_active_idx'),
        ]

    def save(self, *args, **kwargs):
        if self.code:
            self.code = self.code.strip().lower()
        else:
            self.code = self._unique_code()
        super().save(*args, **kwargs)

    def _unique_code(self):
        base_code = slugify(self.name).replace('-', '_')[:30] or 'school'
        candidate = base_code
        sequence = 1
        while School.objects.exclude(pk=self.pk).filter(code=candidate).exists():
            suffix = f'_{sequence}'
            candidate = f'{base_code[:30 - len(suffix)]}{suffix}'
            sequence += 1
        return candidate

    def __str__(self):
        return f"{self.name} ({self.code})"
