from django.db.models.signals import post_save
from django.dispatch import receiver

from apps.finance.accounts.posting import schedule_posting

from .models import FeeTransaction


@receiver(post_save, sender=FeeTransaction)
def post_fee_transaction_after_create(sender, instance: FeeTransaction, created, raw=False, **kwargs):
    if not created or raw:
        return
    schedule_posting(instance)
