"""
Posting policy: maps a source financial event onto a balanced entry draft.

`decide` performs no I/O. It reads only the event snapshot and the tenant's
account mappings, and raises `ConfigurationError` naming the first mapping it
could not resolve.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional

from django.conf import settings

from .config import LedgerEvent, TenantLedgerConfig
from .exceptions import ConfigurationError, InvalidJournalLineError, UnbalancedEntryError
from .models import JournalEntry


BURSARY_PAYMENT_METHOD = 'bursary'

TWOPLACES = Decimal('0.01')


def _quantize(value) -> Decimal:
    return Decimal(value).quantize(TWOPLACES)


def balance_tolerance() -> Decimal:
    return Decimal(str(getattr(settings, 'LEDGER_BALANCE_TOLERANCE', '0.001')))


@dataclass(frozen=True)
class DraftLine:
    account_id: int
    debit: Optional[Decimal] = None
    credit: Optional[Decimal] = None
    description: str = ''

    @classmethod
    def dr(cls, account_id, amount, description=''):
        return cls(account_id=account_id, debit=_quantize(amount), description=description)

    @classmethod
    def cr(cls, account_id, amount, description=''):
        return cls(account_id=account_id, credit=_quantize(amount), description=description)

    def swapped(self) -> DraftLine:
        return DraftLine(
            account_id=self.account_id,
            debit=self.credit,
            credit=self.debit,
            description=self.description,
        )


@dataclass(frozen=True)
class EntryDraft:
    date: date
    description: str
    source_type: str
    source_id: str
    lines: tuple

    @property
    def total_debit(self) -> Decimal:
        return sum((line.debit for line in self.lines if line.debit is not None), Decimal('0.00'))

    @property
    def total_credit(self) -> Decimal:
        return sum((line.credit for line in self.lines if line.credit is not None), Decimal('0.00'))


def validate_draft(draft: EntryDraft) -> EntryDraft:
    if len(draft.lines) < 2:
        raise InvalidJournalLineError('A journal entry needs at least two lines.', missing_mapping='lines')

    for index, line in enumerate(draft.lines):
        if line.account_id is None:
            raise InvalidJournalLineError(f'Line {index} has no account.', missing_mapping='account')
        has_debit = line.debit is not None
        has_credit = line.credit is not None
        if has_debit == has_credit:
            raise InvalidJournalLineError(
                f'Line {index} must carry exactly one of debit or credit.',
                missing_mapping='amount',
            )
        value = line.debit if has_debit else line.credit
        if value <= 0:
            raise InvalidJournalLineError(
                f'Line {index} amount must be positive, got {value}.',
                missing_mapping='amount',
            )

    total_debit = draft.total_debit
    total_credit = draft.total_credit
    if abs(total_debit - total_credit) > balance_tolerance():
        raise UnbalancedEntryError(total_debit, total_credit)
    return draft


def _require(account_id, mapping_name, message):
    if not account_id:
        raise ConfigurationError(message, missing_mapping=mapping_name)
    return account_id


def _event_amount(event: LedgerEvent) -> Decimal:
    try:
        amount = _quantize(event.amount)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidJournalLineError(
            f'Amount {event.amount!r} is not a valid number.',
            missing_mapping='amount',
        ) from None
    if amount <= 0:
        raise InvalidJournalLineError(
            f'Amount must be greater than zero, got {amount}.',
            missing_mapping='amount',
        )
    return amount


def _cash_account(config):
    return _require(
        config.default_cash_account_id,
        'default_cash_account',
        'Default Cash account is not configured.',
    )


def _receivable_account(config):
    return _require(
        config.default_accounts_receivable_account_id,
        'default_accounts_receivable_account',
        'Default Accounts Receivable account is not configured.',
    )


def _fee_revenue_account(event, config, *, allow_default):
    if event.fee_type_id is not None:
        mapped = config.fee_type_revenue_account_ids.get(event.fee_type_id)
        if mapped:
            return mapped
        if not allow_default:
            raise ConfigurationError(
                f'Fee item "{event.fee_type_name or event.fee_type_id}" has no revenue account.',
                missing_mapping=f'fee_type[{event.fee_type_id}].revenue_account',
            )

    if config.default_fee_revenue_account_id:
        return config.default_fee_revenue_account_id

    if event.fee_type_id is None:
        raise ConfigurationError(
            'Payment has no fee item and no default fee revenue account is configured.',
            missing_mapping='default_fee_revenue_account',
        )
    raise ConfigurationError(
        f'Fee item "{event.fee_type_name or event.fee_type_id}" has no revenue account '
        'and no default fee revenue account is configured.',
        missing_mapping=f'fee_type[{event.fee_type_id}].revenue_account',
    )


def _fee_payment(event, config, amount):
    label = event.party_label or 'student'
    if event.payment_method == BURSARY_PAYMENT_METHOD:
        bursary_id = _require(
            config.default_bursary_expense_account_id,
            'default_bursary_expense_account',
            'Default Bursary Expense account is not configured.',
        )
        receivable_id = _receivable_account(config)
        return (
            event.description or f'Bursary/Scholarship applied for {label}',
            (
                DraftLine.dr(bursary_id, amount, f'Bursary for {label}'),
                DraftLine.cr(receivable_id, amount, f'Fee balance settled for {label}'),
            ),
        )

    cash_id = _cash_account(config)
    revenue_id = _fee_revenue_account(event, config, allow_default=True)
    return (
        event.description or f'Fee payment from {label}',
        (
            DraftLine.dr(cash_id, amount, f'Payment from {label}'),
            DraftLine.cr(revenue_id, amount, event.fee_type_name or 'Fee revenue'),
        ),
    )


def _fee_billing(event, config, amount):
    if event.fee_type_id is None:
        raise ConfigurationError(
            'Fee billing has no fee item to take its revenue account from.',
            missing_mapping='fee_transaction.fee_type',
        )
    label = event.party_label or 'student'
    receivable_id = _receivable_account(config)
    revenue_id = _fee_revenue_account(event, config, allow_default=False)
    return (
        event.description or f'Fees billed to {label}',
        (
            DraftLine.dr(receivable_id, amount, f'Billed to {label}'),
            DraftLine.cr(revenue_id, amount, event.fee_type_name),
        ),
    )


def _income(event, config, amount):
    cash_id = _cash_account(config)
    revenue_id = _require(
        event.account_id,
        'income.account',
        'Income record has no revenue account.',
    )
    return (
        event.description or 'Income received',
        (
            DraftLine.dr(cash_id, amount, event.party_label),
            DraftLine.cr(revenue_id, amount, event.party_label),
        ),
    )


def _expense(event, config, amount):
    expense_id = _require(
        event.account_id,
        'expense.account',
        'Expense record has no expense account.',
    )
    cash_id = _cash_account(config)
    return (
        event.description or 'Expense paid',
        (
            DraftLine.dr(expense_id, amount, event.party_label),
            DraftLine.cr(cash_id, amount, event.party_label),
        ),
    )


_RULES = {
    JournalEntry.SOURCE_FEE_PAYMENT: _fee_payment,
    JournalEntry.SOURCE_FEE_BILLING: _fee_billing,
    JournalEntry.SOURCE_INCOME: _income,
    JournalEntry.SOURCE_EXPENSE: _expense,
}


def decide(event: LedgerEvent, config: TenantLedgerConfig) -> EntryDraft:
    rule = _RULES.get(event.source_type)
    if rule is None:
        raise ConfigurationError(
            f'No posting rule for source type "{event.source_type}".',
            missing_mapping='source_type',
        )

    amount = _event_amount(event)
    description, lines = rule(event, config, amount)
    draft = EntryDraft(
        date=event.date,
        description=description[:255],
        source_type=event.source_type,
        source_id=str(event.source_id),
        lines=lines,
    )
    return validate_draft(draft)
