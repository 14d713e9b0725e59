from django.db import models


class SchoolQuerySet(models.QuerySet):
    def for_school(self, school):
        return self.filter(school=school)


class SchoolManager(models.Manager):
    def get_queryset(self):
        return SchoolQuerySet(self.model, using=self._db)

    def for_school(self, school):
        return self.get_queryset().for_school(school)


class LedgerSourceQuerySet(SchoolQuerySet):
    """Financial events that carry a `journal_entry` posting marker."""

    def posted(self):
        return self.filter(journal_entry__isnull=False)

    def unposted(self):
        return self.filter(journal_entry__isnull=True)


class LedgerSourceManager(SchoolManager):
    def get_queryset(self):
        return LedgerSourceQuerySet(self.model, using=self._db)

    def posted(self):
        return self.get_queryset().posted()

    def unposted(self):
        return self.get_queryset().unposted()
