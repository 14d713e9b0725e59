from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from apps.core.schools.models import School
from apps.core.students.models import Student
from apps.core.utils.managers import SchoolManager
from apps.finance.accounts.config import LedgerEvent
from apps.finance.accounts.models import Account, JournalEntry, LedgerSourceModel


class FeeType(models.Model):
    CATEGORY_ACADEMIC = 'academic'
    CATEGORY_BOARDING = 'boarding'
    CATEGORY_TRANSPORT = 'transport'
    CATEGORY_OTHER = 'other'
    CATEGORY_CHOICES = (
        (CATEGORY_ACADEMIC, 'Academic'),
        (CATEGORY_BOARDING, 'Boarding'),
        (CATEGORY_TRANSPORT, 'Transport'),
        (CATEGORY_OTHER, 'Other'),
    )

    school = models.ForeignKey(
        School,
        on_delete=models.CASCADE,
        related_name='fee_types',
    )
    objects = SchoolManager()

    name = models.CharField(max_length=120)
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES, default=CATEGORY_ACADEMIC)
    revenue_account = models.ForeignKey(
        Account,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='fee_types',
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['name', 'id']
        constraints = [
            models.UniqueConstraint(
                fields=['school', 'name'],
                name='unique_fee_type_name_per_school',
            ),
        ]
        indexes = [
            models.Index(fields=['school', 'category', 'is_active'], name='fee_type_school_category_idx'),
        ]

    def clean(self):
        super().clean()
        if self.name:
            self.name = self.name.strip()
        if not self.name:
            raise ValidationError({'name': 'Fee type name is required.'})

        if self.revenue_account_id:
            if self.revenue_account.school_id != self.school_id:
                raise ValidationError({'revenue_account': 'Revenue account must belong to the same school.'})
            if self.revenue_account.account_type != Account.TYPE_REVENUE:
                raise ValidationError({'revenue_account': 'Select a revenue account.'})

    def delete(self, *args, **kwargs):
        if self.is_active:
            self.is_active = False
            self.save(update_fields=['is_active'])

    def __str__(self):
        return f"{self.name} ({self.school.code})"


class FeeTransaction(LedgerSourceModel):
    LEDGER_COLLECTION = 'fee_transactions'

    TYPE_DEBIT = 'debit'
    TYPE_CREDIT = 'credit'
    TYPE_CHOICES = (
        (TYPE_DEBIT, 'Billing'),
        (TYPE_CREDIT, 'Payment'),
    )

    METHOD_CASH = 'cash'
    METHOD_BANK = 'bank'
    METHOD_MOBILE_MONEY = 'mobile_money'
    METHOD_CHEQUE = 'cheque'
    METHOD_SCHOOLPAY = 'schoolpay'
    METHOD_BURSARY = 'bursary'
    METHOD_CHOICES = (
        (METHOD_CASH, 'Cash'),
        (METHOD_BANK, 'Bank Deposit'),
        (METHOD_MOBILE_MONEY, 'Mobile Money'),
        (METHOD_CHEQUE, 'Cheque'),
        (METHOD_SCHOOLPAY, 'SchoolPay'),
        (METHOD_BURSARY, 'Bursary/Scholarship'),
    )

    school = models.ForeignKey(
        School,
        on_delete=models.CASCADE,
        related_name='fee_transactions',
    )
    student = models.ForeignKey(
        Student,
        on_delete=models.PROTECT,
        related_name='fee_transactions',
    )
    fee_type = models.ForeignKey(
        FeeType,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='transactions',
    )
    transaction_type = models.CharField(max_length=10, choices=TYPE_CHOICES)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    transaction_date = models.DateField(default=timezone.localdate)
    payment_method = models.CharField(max_length=20, choices=METHOD_CHOICES, blank=True)
    reference_number = models.CharField(max_length=100, blank=True)
    description = models.CharField(max_length=255, blank=True)
    recorded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='fee_transactions_recorded',
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-transaction_date', '-id']
        indexes = [
            models.Index(fields=['school', 'transaction_date'], name='fee_txn_school_date_idx'),
            models.Index(fields=['school', 'student', 'transaction_date'], name='fee_txn_student_date_idx'),
        ]

    @property
    def is_payment(self):
        return self.transaction_type == self.TYPE_CREDIT

    @property
    def ledger_source_type(self):
        if self.is_payment:
            return JournalEntry.SOURCE_FEE_PAYMENT
        return JournalEntry.SOURCE_FEE_BILLING

    def clean(self):
        super().clean()
        if self.amount is None or self.amount <= Decimal('0.00'):
            raise ValidationError({'amount': 'Amount must be greater than zero.'})

        if self.student_id and self.student.school_id != self.school_id:
            raise ValidationError({'student': 'Student must belong to the same school.'})

        if self.fee_type_id and self.fee_type.school_id != self.school_id:
            raise ValidationError({'fee_type': 'Fee type must belong to the same school.'})

        if self.is_payment and not self.payment_method:
            raise ValidationError({'payment_method': 'Payment method is required for payments.'})

        if self.transaction_type == self.TYPE_DEBIT and not self.fee_type_id:
            raise ValidationError({'fee_type': 'Billings must name the fee item being charged.'})

    def to_ledger_event(self):
        fee_type = self.fee_type if self.fee_type_id else None
        return LedgerEvent(
            source_type=self.ledger_source_type,
            source_id=str(self.pk),
            amount=self.amount,
            date=self.transaction_date,
            description=self.description,
            payment_method=self.payment_method,
            fee_type_id=self.fee_type_id,
            fee_type_name=fee_type.name if fee_type else '',
            party_label=f'{self.student.full_name} ({self.student.registration_number})',
        )

    def __str__(self):
        return f"{self.get_transaction_type_display()} {self.amount} - {self.student}"
