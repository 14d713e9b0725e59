"""
Financial statements derived on demand from journal entry lines.

Nothing here is stored. An out-of-balance ledger is reported through
`warnings` on the returned statement, never raised.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from django.db.models import Prefetch, Sum

from .models import Account, JournalEntry, JournalEntryLine, SchoolLedgerSettings
from .policy import balance_tolerance
from .registry import list_accounts


logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')


def _money(value):
    return f'{value:.2f}'


@dataclass(frozen=True)
class InvariantViolation:
    code: str
    message: str
    difference: Decimal

    def as_dict(self):
        return {'code': self.code, 'message': self.message, 'difference': _money(self.difference)}


@dataclass(frozen=True)
class TrialBalanceRow:
    account_id: int
    code: str
    name: str
    account_type: str
    debit_balance: Decimal
    credit_balance: Decimal

    def as_dict(self):
        return {
            'account_id': self.account_id,
            'code': self.code,
            'name': self.name,
            'account_type': self.account_type,
            'debit_balance': _money(self.debit_balance),
            'credit_balance': _money(self.credit_balance),
        }


@dataclass
class TrialBalance:
    as_of: date
    rows: list = field(default_factory=list)
    total_debits: Decimal = ZERO
    total_credits: Decimal = ZERO
    warnings: list = field(default_factory=list)

    @property
    def is_balanced(self):
        return abs(self.total_debits - self.total_credits) <= balance_tolerance()

    def as_dict(self):
        return {
            'as_of': self.as_of.isoformat(),
            'rows': [row.as_dict() for row in self.rows],
            'total_debits': _money(self.total_debits),
            'total_credits': _money(self.total_credits),
            'is_balanced': self.is_balanced,
            'warnings': [warning.as_dict() for warning in self.warnings],
        }


@dataclass(frozen=True)
class StatementLine:
    account_id: int
    code: str
    name: str
    amount: Decimal

    def as_dict(self):
        return {
            'account_id': self.account_id,
            'code': self.code,
            'name': self.name,
            'amount': _money(self.amount),
        }


@dataclass
class IncomeStatement:
    start: date
    end: date
    revenue_lines: list = field(default_factory=list)
    expense_lines: list = field(default_factory=list)
    total_revenue: Decimal = ZERO
    total_expenses: Decimal = ZERO

    @property
    def net_income(self):
        return self.total_revenue - self.total_expenses

    def as_dict(self):
        return {
            'start': self.start.isoformat(),
            'end': self.end.isoformat(),
            'revenue': [line.as_dict() for line in self.revenue_lines],
            'expenses': [line.as_dict() for line in self.expense_lines],
            'total_revenue': _money(self.total_revenue),
            'total_expenses': _money(self.total_expenses),
            'net_income': _money(self.net_income),
        }


@dataclass
class BalanceSheet:
    as_of: date
    period_start: date
    assets: list = field(default_factory=list)
    liabilities: list = field(default_factory=list)
    equity: list = field(default_factory=list)
    total_assets: Decimal = ZERO
    total_liabilities: Decimal = ZERO
    total_equity_accounts: Decimal = ZERO
    retained_earnings: Decimal = ZERO
    net_income: Decimal = ZERO
    warnings: list = field(default_factory=list)

    @property
    def total_equity(self):
        return self.total_equity_accounts + self.retained_earnings + self.net_income

    @property
    def total_liabilities_and_equity(self):
        return self.total_liabilities + self.total_equity

    @property
    def difference(self):
        return self.total_assets - self.total_liabilities_and_equity

    @property
    def is_balanced(self):
        return abs(self.difference) <= balance_tolerance()

    def as_dict(self):
        return {
            'as_of': self.as_of.isoformat(),
            'period_start': self.period_start.isoformat(),
            'assets': [line.as_dict() for line in self.assets],
            'liabilities': [line.as_dict() for line in self.liabilities],
            'equity': [line.as_dict() for line in self.equity],
            'total_assets': _money(self.total_assets),
            'total_liabilities': _money(self.total_liabilities),
            'total_equity_accounts': _money(self.total_equity_accounts),
            'retained_earnings': _money(self.retained_earnings),
            'net_income': _money(self.net_income),
            'total_equity': _money(self.total_equity),
            'total_liabilities_and_equity': _money(self.total_liabilities_and_equity),
            'is_balanced': self.is_balanced,
            'warnings': [warning.as_dict() for warning in self.warnings],
        }


@dataclass(frozen=True)
class AccountLedgerLine:
    entry_id: int
    date: date
    description: str
    debit: Optional[Decimal]
    credit: Optional[Decimal]
    balance: Decimal
    side: str

    @property
    def balance_display(self):
        return f'{_money(abs(self.balance))} {self.side}'

    def as_dict(self):
        return {
            'entry_id': self.entry_id,
            'date': self.date.isoformat(),
            'description': self.description,
            'debit': _money(self.debit) if self.debit is not None else None,
            'credit': _money(self.credit) if self.credit is not None else None,
            'balance': self.balance_display,
        }


@dataclass
class AccountLedger:
    account: Account
    start: date
    end: date
    opening_balance: Decimal = ZERO
    lines: list = field(default_factory=list)

    @property
    def closing_balance(self):
        return self.lines[-1].balance if self.lines else self.opening_balance

    def as_dict(self):
        return {
            'account_id': self.account.id,
            'account': str(self.account),
            'account_type': self.account.account_type,
            'start': self.start.isoformat(),
            'end': self.end.isoformat(),
            'opening_balance': _money(self.opening_balance),
            'closing_balance': _money(self.closing_balance),
            'lines': [line.as_dict() for line in self.lines],
        }


def _net_debits_by_account(school, *, start=None, end=None):
    """Map of account id to sum(debit) - sum(credit) for lines in the window."""
    lines = JournalEntryLine.objects.filter(entry__school=school)
    if start is not None:
        lines = lines.filter(entry__date__gte=start)
    if end is not None:
        lines = lines.filter(entry__date__lte=end)
    totals = lines.values('account_id').annotate(debit=Sum('debit'), credit=Sum('credit'))
    return {
        row['account_id']: (row['debit'] or ZERO) - (row['credit'] or ZERO)
        for row in totals
    }


def _is_zero(value):
    return abs(value) <= balance_tolerance()


def trial_balance(school, as_of: date) -> TrialBalance:
    nets = _net_debits_by_account(school, end=as_of)
    statement = TrialBalance(as_of=as_of)

    for account in list_accounts(school):
        net = nets.get(account.id, ZERO)
        if _is_zero(net):
            continue
        # Positive net debits land in the debit column whatever the account's
        # normal side, so abnormal balances show up in the opposite column.
        debit_balance = net if net > 0 else ZERO
        credit_balance = -net if net < 0 else ZERO
        statement.rows.append(TrialBalanceRow(
            account_id=account.id,
            code=account.code,
            name=account.name,
            account_type=account.account_type,
            debit_balance=debit_balance,
            credit_balance=credit_balance,
        ))
        statement.total_debits += debit_balance
        statement.total_credits += credit_balance

    if not statement.is_balanced:
        difference = statement.total_debits - statement.total_credits
        statement.warnings.append(InvariantViolation(
            code='trial_balance_unbalanced',
            message=f'Total debits {_money(statement.total_debits)} do not equal '
                    f'total credits {_money(statement.total_credits)}.',
            difference=difference,
        ))
        logger.warning('Trial balance out of balance for %s by %s', school.code, difference)
    return statement


def income_statement(school, start: date, end: date) -> IncomeStatement:
    nets = _net_debits_by_account(school, start=start, end=end)
    statement = IncomeStatement(start=start, end=end)

    for account in list_accounts(school, account_type=Account.TYPE_REVENUE):
        amount = -nets.get(account.id, ZERO)
        statement.total_revenue += amount
        if not _is_zero(amount):
            statement.revenue_lines.append(StatementLine(account.id, account.code, account.name, amount))

    for account in list_accounts(school, account_type=Account.TYPE_EXPENSE):
        amount = nets.get(account.id, ZERO)
        statement.total_expenses += amount
        if not _is_zero(amount):
            statement.expense_lines.append(StatementLine(account.id, account.code, account.name, amount))

    return statement


def _section(accounts, nets, *, credit_normal):
    lines = []
    total = ZERO
    for account in accounts:
        net = nets.get(account.id, ZERO)
        amount = -net if credit_normal else net
        total += amount
        if not _is_zero(amount):
            lines.append(StatementLine(account.id, account.code, account.name, amount))
    return lines, total


def balance_sheet(school, as_of: date, period_start: Optional[date] = None) -> BalanceSheet:
    """
    Cumulative asset, liability and equity balances as of `as_of`.

    Revenue and expense accounts are never closed, so the sheet folds in
    net income for [period_start, as_of] (default: the calendar year to
    date) and, separately, the net income of everything before
    `period_start` as retained earnings.
    """
    if period_start is None:
        period_start = date(as_of.year, 1, 1)

    nets = _net_debits_by_account(school, end=as_of)
    sheet = BalanceSheet(as_of=as_of, period_start=period_start)
    sheet.assets, sheet.total_assets = _section(
        list_accounts(school, account_type=Account.TYPE_ASSET), nets, credit_normal=False,
    )
    sheet.liabilities, sheet.total_liabilities = _section(
        list_accounts(school, account_type=Account.TYPE_LIABILITY), nets, credit_normal=True,
    )
    sheet.equity, sheet.total_equity_accounts = _section(
        list_accounts(school, account_type=Account.TYPE_EQUITY), nets, credit_normal=True,
    )

    sheet.net_income = income_statement(school, period_start, as_of).net_income
    before = _net_debits_by_account(school, end=min(period_start - timedelta(days=1), as_of))
    income_accounts = list_accounts(school, account_type=Account.TYPE_REVENUE) + list_accounts(
        school, account_type=Account.TYPE_EXPENSE,
    )
    sheet.retained_earnings = -sum((before.get(account.id, ZERO) for account in income_accounts), ZERO)

    if not sheet.is_balanced:
        sheet.warnings.append(InvariantViolation(
            code='balance_sheet_unbalanced',
            message=f'Total assets {_money(sheet.total_assets)} do not equal total liabilities '
                    f'and equity {_money(sheet.total_liabilities_and_equity)}.',
            difference=sheet.difference,
        ))
        logger.warning('Balance sheet out of balance for %s by %s', school.code, sheet.difference)
    return sheet


def account_ledger(school, account: Account, start: date, end: date) -> AccountLedger:
    opening_net = _net_debits_by_account(school, end=start - timedelta(days=1)).get(account.id, ZERO)
    ledger = AccountLedger(
        account=account,
        start=start,
        end=end,
        opening_balance=account.natural_balance(opening_net),
    )

    running = ledger.opening_balance
    lines = (
        JournalEntryLine.objects.filter(
            account=account,
            entry__school=school,
            entry__date__gte=start,
            entry__date__lte=end,
        )
        .select_related('entry')
        .order_by('entry__date', 'entry_id', 'id')
    )
    for line in lines:
        movement = (line.debit or ZERO) - (line.credit or ZERO)
        running += account.natural_balance(movement)
        if running >= 0:
            side = 'DR' if account.is_debit_normal else 'CR'
        else:
            side = 'CR' if account.is_debit_normal else 'DR'
        ledger.lines.append(AccountLedgerLine(
            entry_id=line.entry_id,
            date=line.entry.date,
            description=line.description or line.entry.description,
            debit=line.debit,
            credit=line.credit,
            balance=running,
            side=side,
        ))
    return ledger


@dataclass(frozen=True)
class GeneralLedgerLine:
    account_id: int
    code: str
    name: str
    debit: Optional[Decimal]
    credit: Optional[Decimal]
    description: str

    def as_dict(self):
        return {
            'account_id': self.account_id,
            'code': self.code,
            'name': self.name,
            'debit': _money(self.debit) if self.debit is not None else None,
            'credit': _money(self.credit) if self.credit is not None else None,
            'description': self.description,
        }


@dataclass(frozen=True)
class GeneralLedgerEntry:
    entry_id: int
    date: date
    description: str
    source_document_type: str
    source_document_id: str
    reverses_id: Optional[int]
    lines: tuple

    def as_dict(self):
        return {
            'entry_id': self.entry_id,
            'date': self.date.isoformat(),
            'description': self.description,
            'source_document_type': self.source_document_type,
            'source_document_id': self.source_document_id,
            'reverses': self.reverses_id,
            'lines': [line.as_dict() for line in self.lines],
        }


@dataclass
class GeneralLedger:
    start: date
    end: date
    entries: list = field(default_factory=list)
    total_debits: Decimal = ZERO
    total_credits: Decimal = ZERO

    @property
    def is_balanced(self):
        return abs(self.total_debits - self.total_credits) <= balance_tolerance()

    def as_dict(self):
        return {
            'start': self.start.isoformat(),
            'end': self.end.isoformat(),
            'entries': [entry.as_dict() for entry in self.entries],
            'total_debits': _money(self.total_debits),
            'total_credits': _money(self.total_credits),
            'is_balanced': self.is_balanced,
        }


def general_ledger(school, start: date, end: date, source_type: Optional[str] = None) -> GeneralLedger:
    """Every journal entry dated in [start, end] with its lines, oldest first."""
    entries = (
        JournalEntry.objects.for_school(school)
        .filter(date__gte=start, date__lte=end)
        .prefetch_related(
            Prefetch('lines', queryset=JournalEntryLine.objects.select_related('account').order_by('id')),
        )
        .order_by('date', 'id')
    )
    if source_type:
        entries = entries.filter(source_document_type=source_type)

    ledger = GeneralLedger(start=start, end=end)
    for entry in entries:
        lines = tuple(
            GeneralLedgerLine(
                account_id=line.account_id,
                code=line.account.code,
                name=line.account.name,
                debit=line.debit,
                credit=line.credit,
                description=line.description,
            )
            for line in entry.lines.all()
        )
        for line in lines:
            ledger.total_debits += line.debit or ZERO
            ledger.total_credits += line.credit or ZERO
        ledger.entries.append(GeneralLedgerEntry(
            entry_id=entry.id,
            date=entry.date,
            description=entry.description,
            source_document_type=entry.source_document_type,
            source_document_id=entry.source_document_id,
            reverses_id=entry.reverses_id,
            lines=lines,
        ))
    return ledger


@dataclass
class CashFlowStatement:
    start: date
    end: date
    cash_account_ids: tuple = ()
    opening_cash: Decimal = ZERO
    fee_receipts: Decimal = ZERO
    other_receipts: Decimal = ZERO
    operating_payments: Decimal = ZERO
    other_movements: Decimal = ZERO
    closing_cash: Decimal = ZERO
    warnings: list = field(default_factory=list)

    @property
    def total_inflows(self):
        return self.fee_receipts + self.other_receipts

    @property
    def net_change(self):
        return self.total_inflows - self.operating_payments + self.other_movements

    def as_dict(self):
        return {
            'start': self.start.isoformat(),
            'end': self.end.isoformat(),
            'cash_account_ids': list(self.cash_account_ids),
            'opening_cash': _money(self.opening_cash),
            'inflows': {
                'student_fee_payments': _money(self.fee_receipts),
                'other_income': _money(self.other_receipts),
                'total': _money(self.total_inflows),
            },
            'outflows': {
                'operating_expenses': _money(self.operating_payments),
                'total': _money(self.operating_payments),
            },
            'other_movements': _money(self.other_movements),
            'net_change': _money(self.net_change),
            'closing_cash': _money(self.closing_cash),
            'warnings': [warning.as_dict() for warning in self.warnings],
        }


def cash_accounts(school) -> list[Account]:
    """The tenant's default cash account, else active asset accounts named like cash or bank."""
    settings_row = SchoolLedgerSettings.objects.filter(school=school).select_related('default_cash_account').first()
    if settings_row is not None and settings_row.default_cash_account is not None:
        return [settings_row.default_cash_account]
    return [
        account
        for account in list_accounts(school, account_type=Account.TYPE_ASSET, active_only=True)
        if 'cash' in account.name.lower() or 'bank' in account.name.lower()
    ]


def cash_flow_statement(school, start: date, end: date) -> CashFlowStatement:
    """
    Cash movements in [start, end] read from the cash accounts' journal lines.

    Fee payment and income entries count as inflows, expense entries as
    operating outflows. Manual entries and reversals that touch cash are
    reported together as other movements.
    """
    accounts = cash_accounts(school)
    statement = CashFlowStatement(start=start, end=end, cash_account_ids=tuple(account.id for account in accounts))
    if not accounts:
        logger.warning('No cash account found for %s', school.code)
        statement.warnings.append(InvariantViolation(
            code='cash_account_missing',
            message='No default cash account is set and no asset account is named like cash or bank.',
            difference=ZERO,
        ))
        return statement

    opening = _net_debits_by_account(school, end=start - timedelta(days=1))
    closing = _net_debits_by_account(school, end=end)
    statement.opening_cash = sum((opening.get(account_id, ZERO) for account_id in statement.cash_account_ids), ZERO)
    statement.closing_cash = sum((closing.get(account_id, ZERO) for account_id in statement.cash_account_ids), ZERO)

    movements = (
        JournalEntryLine.objects.filter(
            entry__school=school,
            account_id__in=statement.cash_account_ids,
            entry__date__gte=start,
            entry__date__lte=end,
        )
        .values('entry__source_document_type')
        .annotate(debit=Sum('debit'), credit=Sum('credit'))
    )
    for row in movements:
        net = (row['debit'] or ZERO) - (row['credit'] or ZERO)
        source_type = row['entry__source_document_type']
        if source_type == JournalEntry.SOURCE_FEE_PAYMENT:
            statement.fee_receipts += net
        elif source_type == JournalEntry.SOURCE_INCOME:
            statement.other_receipts += net
        elif source_type == JournalEntry.SOURCE_EXPENSE:
            statement.operating_payments -= net
        else:
            statement.other_movements += net
    return statement
