from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

from django.db import transaction
from django.utils import timezone

from .models import SchoolExpense, SchoolIncome


def _quantize(value) -> Decimal:
    return Decimal(str(value or '0')).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


@transaction.atomic
def record_income(*, school, amount, description, account=None, source='', date=None,
                  reference_number='', recorded_by=None) -> SchoolIncome:
    income = SchoolIncome(
        school=school,
        amount=_quantize(amount),
        description=description,
        account=account,
        source=source,
        date=date or timezone.localdate(),
        reference_number=reference_number,
        recorded_by=recorded_by,
    )
    income.full_clean()
    income.save()
    return income


@transaction.atomic
def record_expense(*, school, amount, description, account=None, category='', payee='', date=None,
                   reference_number='', recorded_by=None) -> SchoolExpense:
    expense = SchoolExpense(
        school=school,
        amount=_quantize(amount),
        description=description,
        account=account,
        category=category,
        payee=payee,
        date=date or timezone.localdate(),
        reference_number=reference_number,
        recorded_by=recorded_by,
    )
    expense.full_clean()
    expense.save()
    return expense
