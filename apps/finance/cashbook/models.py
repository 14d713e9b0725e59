from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from apps.core.schools.models import School
from apps.finance.accounts.config import LedgerEvent
from apps.finance.accounts.models import Account, JournalEntry, LedgerSourceModel


class CashbookRecord(LedgerSourceModel):
    """Common fields of one-off money received or paid outside fees."""

    EXPECTED_ACCOUNT_TYPE = None
    LEDGER_SOURCE_TYPE = None

    date = models.DateField(default=timezone.localdate)
    description = models.CharField(max_length=255)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    reference_number = models.CharField(max_length=100, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        abstract = True

    @property
    def counterparty_label(self):
        return ''

    def clean(self):
        super().clean()
        if self.amount is None or self.amount <= Decimal('0.00'):
            raise ValidationError({'amount': 'Amount must be greater than zero.'})

        if self.account_id:
            if self.account.school_id != self.school_id:
                raise ValidationError({'account': 'Account must belong to the same school.'})
            if self.account.account_type != self.EXPECTED_ACCOUNT_TYPE:
                raise ValidationError({'account': f'Select an {self.EXPECTED_ACCOUNT_TYPE} account.'})

    def to_ledger_event(self):
        return LedgerEvent(
            source_type=self.LEDGER_SOURCE_TYPE,
            source_id=str(self.pk),
            amount=self.amount,
            date=self.date,
            description=self.description,
            account_id=self.account_id,
            party_label=self.counterparty_label,
        )


class SchoolIncome(CashbookRecord):
    LEDGER_COLLECTION = 'income'
    LEDGER_SOURCE_TYPE = JournalEntry.SOURCE_INCOME
    EXPECTED_ACCOUNT_TYPE = Account.TYPE_REVENUE

    school = models.ForeignKey(
        School,
        on_delete=models.CASCADE,
        related_name='income_records',
    )
    source = models.CharField(max_length=150, blank=True)  # payer, e.g. "Uniform sales"
    account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='income_records',
    )
    recorded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='income_recorded',
    )

    class Meta:
        ordering = ['-date', '-id']
        verbose_name = 'income record'
        indexes = [
            models.Index(fields=['school', 'date'], name='cashbook_income_school_date'),
        ]

    @property
    def counterparty_label(self):
        return self.source

    def __str__(self):
        return f"Income {self.amount} on {self.date}"


class SchoolExpense(CashbookRecord):
    LEDGER_COLLECTION = 'expenses'
    LEDGER_SOURCE_TYPE = JournalEntry.SOURCE_EXPENSE
    EXPECTED_ACCOUNT_TYPE = Account.TYPE_EXPENSE

    school = models.ForeignKey(
        School,
        on_delete=models.CASCADE,
        related_name='expense_records',
    )
    category = models.CharField(max_length=100, blank=True)
    payee = models.CharField(max_length=150, blank=True)
    account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='expense_records',
    )
    recorded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='expenses_recorded',
    )

    class Meta:
        ordering = ['-date', '-id']
        verbose_name = 'expense record'
        indexes = [
            models.Index(fields=['school', 'date'], name='cashbook_expense_school_date'),
        ]

    @property
    def counterparty_label(self):
        return self.payee or self.category

    def __str__(self):
        return f"Expense {self.amount} on {self.date}"
