from django.db.models.signals import post_save
from django.dispatch import receiver

from apps.finance.accounts.posting import schedule_posting

from .models import SchoolExpense, SchoolIncome


@receiver(post_save, sender=SchoolIncome)
@receiver(post_save, sender=SchoolExpense)
def post_cashbook_record_after_create(sender, instance, created, raw=False, **kwargs):
    if not created or raw:
        return
    schedule_posting(instance)
