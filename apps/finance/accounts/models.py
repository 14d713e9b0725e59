from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q, Sum
from django.utils import timezone

from apps.core.schools.models import School
from apps.core.utils.managers import LedgerSourceManager, SchoolManager


class Account(models.Model):
    TYPE_ASSET = 'asset'
    TYPE_LIABILITY = 'liability'
    TYPE_EQUITY = 'equity'
    TYPE_REVENUE = 'revenue'
    TYPE_EXPENSE = 'expense'
    TYPE_CHOICES = (
        (TYPE_ASSET, 'Asset'),
        (TYPE_LIABILITY, 'Liability'),
        (TYPE_EQUITY, 'Equity'),
        (TYPE_REVENUE, 'Revenue'),
        (TYPE_EXPENSE, 'Expense'),
    )
    DEBIT_NORMAL_TYPES = frozenset({TYPE_ASSET, TYPE_EXPENSE})

    school = models.ForeignKey(
        School,
        on_delete=models.CASCADE,
        related_name='accounts',
    )
    objects = SchoolManager()

    code = models.CharField(max_length=20, blank=True)
    name = models.CharField(max_length=150)
    account_type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    parent = models.ForeignKey(
        'self',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='children',
    )
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['code', 'name', 'id']
        constraints = [
            models.UniqueConstraint(
                fields=['school', 'code'],
                condition=~Q(code=''),
                name='unique_account_code_per_school',
            ),
        ]
        indexes = [
            models.Index(fields=['school', 'account_type'], name='account_school_type_idx'),
        ]

    @property
    def is_debit_normal(self):
        return self.account_type in self.DEBIT_NORMAL_TYPES

    def natural_balance(self, net_debit: Decimal) -> Decimal:
        """Convert a debit-minus-credit figure into this account's natural sign."""
        return net_debit if self.is_debit_normal else -net_debit

    def clean(self):
        super().clean()
        if self.name:
            self.name = self.name.strip()
        if not self.name:
            raise ValidationError({'name': 'Account name is required.'})

        if self.account_type not in dict(self.TYPE_CHOICES):
            raise ValidationError({'account_type': 'Select a valid account type.'})

        if self.parent_id:
            if self.parent.school_id != self.school_id:
                raise ValidationError({'parent': 'Parent account must belong to the same school.'})
            if self.parent.account_type != self.account_type:
                raise ValidationError({'parent': 'Parent account must have the same account type.'})

        if not self.pk:
            return

        previous = Account.objects.filter(pk=self.pk).values('account_type').first()
        if (
            previous
            and previous['account_type'] != self.account_type
            and self.journal_lines.exists()
        ):
            raise ValidationError(
                {'account_type': 'Account type cannot change once journal entries reference the account.'}
            )

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        if self.journal_lines.exists():
            raise ValidationError('Accounts referenced by journal entries cannot be deleted. Deactivate instead.')
        return super().delete(*args, **kwargs)

    def __str__(self):
        if self.code:
            return f"{self.code} - {self.name}"
        return self.name


class SchoolLedgerSettings(models.Model):
    """Tenant-level default accounts used by automatic posting."""

    MAPPING_EXPECTED_TYPES = {
        'default_cash_account': Account.TYPE_ASSET,
        'default_accounts_receivable_account': Account.TYPE_ASSET,
        'default_bursary_expense_account': Account.TYPE_EXPENSE,
        'default_fee_revenue_account': Account.TYPE_REVENUE,
    }

    school = models.OneToOneField(
        School,
        on_delete=models.CASCADE,
        related_name='ledger_settings',
    )
    default_cash_account = models.ForeignKey(
        Account,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
    )
    default_accounts_receivable_account = models.ForeignKey(
        Account,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
    )
    default_bursary_expense_account = models.ForeignKey(
        Account,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
    )
    default_fee_revenue_account = models.ForeignKey(
        Account,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = 'school ledger settings'

    def clean(self):
        super().clean()
        errors = {}
        for field_name, expected_type in self.MAPPING_EXPECTED_TYPES.items():
            account = getattr(self, field_name)
            if account is None:
                continue
            if account.school_id != self.school_id:
                errors[field_name] = 'Account must belong to the same school.'
            elif account.account_type != expected_type:
                errors[field_name] = f'Account must be of type {expected_type}.'
        if errors:
            raise ValidationError(errors)

    def __str__(self):
        return f"Ledger settings for {self.school.code}"


class JournalEntry(models.Model):
    SOURCE_FEE_PAYMENT = 'fee_payment'
    SOURCE_FEE_BILLING = 'fee_billing'
    SOURCE_INCOME = 'income'
    SOURCE_EXPENSE = 'expense'
    SOURCE_MANUAL = 'manual'
    SOURCE_REVERSAL = 'reversal'
    SOURCE_TYPE_CHOICES = (
        (SOURCE_FEE_PAYMENT, 'Fee Payment'),
        (SOURCE_FEE_BILLING, 'Fee Billing'),
        (SOURCE_INCOME, 'Income'),
        (SOURCE_EXPENSE, 'Expense'),
        (SOURCE_MANUAL, 'Manual'),
        (SOURCE_REVERSAL, 'Reversal'),
    )
    AUTOMATED_SOURCE_TYPES = (
        SOURCE_FEE_PAYMENT,
        SOURCE_FEE_BILLING,
        SOURCE_INCOME,
        SOURCE_EXPENSE,
    )

    school = models.ForeignKey(
        School,
        on_delete=models.CASCADE,
        related_name='journal_entries',
    )
    objects = SchoolManager()

    date = models.DateField(default=timezone.localdate)
    description = models.CharField(max_length=255)
    source_document_type = models.CharField(max_length=20, choices=SOURCE_TYPE_CHOICES)
    source_document_id = models.CharField(max_length=64, blank=True)
    posted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='journal_entries_posted',
    )
    reverses = models.OneToOneField(
        'self',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='reversal',
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['date', 'id']
        verbose_name_plural = 'journal entries'
        constraints = [
            models.UniqueConstraint(
                fields=['school', 'source_document_type', 'source_document_id'],
                condition=Q(source_document_type__in=[
                    'fee_payment',
                    'fee_billing',
                    'income',
                    'expense',
                ]),
                name='unique_journal_entry_per_source_document',
            ),
        ]
        indexes = [
            models.Index(fields=['school', 'date'], name='journal_entry_school_date_idx'),
            models.Index(fields=['school', 'source_document_type', 'source_document_id'], name='journal_entry_source_idx'),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError('Journal entries are immutable. Post a reversing entry instead.')
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError('Journal entries cannot be deleted. Post a reversing entry instead.')

    def totals(self):
        aggregate = self.lines.aggregate(debit=Sum('debit'), credit=Sum('credit'))
        return (
            aggregate['debit'] or Decimal('0.00'),
            aggregate['credit'] or Decimal('0.00'),
        )

    def __str__(self):
        return f"JE-{self.id} {self.date} {self.description}"


class JournalEntryLine(models.Model):
    entry = models.ForeignKey(
        JournalEntry,
        on_delete=models.CASCADE,
        related_name='lines',
    )
    account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        related_name='journal_lines',
    )
    debit = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    credit = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    description = models.CharField(max_length=255, blank=True)

    class Meta:
        ordering = ['id']
        constraints = [
            models.CheckConstraint(
                condition=(
                    (Q(debit__gt=0) & Q(credit__isnull=True))
                    | (Q(credit__gt=0) & Q(debit__isnull=True))
                ),
                name='journal_line_single_positive_side',
            ),
        ]
        indexes = [
            models.Index(fields=['account', 'entry'], name='journal_line_account_idx'),
        ]

    def __str__(self):
        side = f"Dr {self.debit}" if self.debit else f"Cr {self.credit}"
        return f"{self.account} {side}"


class LedgerSourceModel(models.Model):
    """
    Base for financial events that the posting engine turns into journal entries.

    `journal_entry` is the posting marker: null means eligible for posting,
    set means already posted. It moves from null to a value exactly once.
    """

    LEDGER_COLLECTION = ''

    journal_entry = models.OneToOneField(
        JournalEntry,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        editable=False,
        related_name='%(app_label)s_%(class)s',
    )
    objects = LedgerSourceManager()

    class Meta:
        abstract = True

    @property
    def is_posted(self):
        return self.journal_entry_id is not None

    def to_ledger_event(self):
        raise NotImplementedError

    def delete(self, *args, **kwargs):
        raise ValidationError('Financial records cannot be deleted. Record a correcting entry instead.')
