from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

from django.db import transaction
from django.db.models import Sum
from django.utils import timezone

from apps.core.students.models import Student

from .models import FeeTransaction, FeeType


def _to_decimal(value) -> Decimal:
    return Decimal(str(value or '0'))


def _quantize(value) -> Decimal:
    return _to_decimal(value).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


def _sum_amount(queryset, field_name='amount') -> Decimal:
    value = queryset.aggregate(total=Sum(field_name)).get('total')
    return _to_decimal(value)


@transaction.atomic
def record_fee_billing(*, student: Student, fee_type: FeeType, amount, transaction_date=None,
                       description='', recorded_by=None) -> FeeTransaction:
    fee_transaction = FeeTransaction(
        school=student.school,
        student=student,
        fee_type=fee_type,
        transaction_type=FeeTransaction.TYPE_DEBIT,
        amount=_quantize(amount),
        transaction_date=transaction_date or timezone.localdate(),
        description=description,
        recorded_by=recorded_by,
    )
    fee_transaction.full_clean()
    fee_transaction.save()
    return fee_transaction


@transaction.atomic
def record_fee_payment(*, student: Student, amount, payment_method, fee_type: FeeType | None = None,
                       transaction_date=None, reference_number='', description='',
                       recorded_by=None) -> FeeTransaction:
    fee_transaction = FeeTransaction(
        school=student.school,
        student=student,
        fee_type=fee_type,
        transaction_type=FeeTransaction.TYPE_CREDIT,
        amount=_quantize(amount),
        transaction_date=transaction_date or timezone.localdate(),
        payment_method=payment_method,
        reference_number=reference_number,
        description=description,
        recorded_by=recorded_by,
    )
    fee_transaction.full_clean()
    fee_transaction.save()
    return fee_transaction


def student_fee_balance(student: Student) -> Decimal:
    """Billed minus paid, including bursaries."""
    transactions = FeeTransaction.objects.filter(school=student.school, student=student)
    billed = _sum_amount(transactions.filter(transaction_type=FeeTransaction.TYPE_DEBIT))
    paid = _sum_amount(transactions.filter(transaction_type=FeeTransaction.TYPE_CREDIT))
    return _quantize(billed - paid)
