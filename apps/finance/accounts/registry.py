from __future__ import annotations

from typing import Optional

from django.db import transaction

from .models import Account, SchoolLedgerSettings


DEFAULT_CHART = (
    # (code, name, account_type, ledger settings field)
    ('1000', 'Cash on Hand', Account.TYPE_ASSET, 'default_cash_account'),
    ('1100', 'Bank Account', Account.TYPE_ASSET, None),
    ('1200', 'Accounts Receivable - Students', Account.TYPE_ASSET, 'default_accounts_receivable_account'),
    ('2000', 'Accounts Payable', Account.TYPE_LIABILITY, None),
    ('3000', 'Capital Fund', Account.TYPE_EQUITY, None),
    ('4000', 'Tuition Fees', Account.TYPE_REVENUE, 'default_fee_revenue_account'),
    ('4100', 'Other Income', Account.TYPE_REVENUE, None),
    ('5000', 'Salaries and Wages', Account.TYPE_EXPENSE, None),
    ('5100', 'Bursaries and Scholarships', Account.TYPE_EXPENSE, 'default_bursary_expense_account'),
    ('5200', 'Utilities', Account.TYPE_EXPENSE, None),
)


def get_account(school, account_id) -> Optional[Account]:
    if not account_id:
        return None
    return Account.objects.for_school(school).filter(pk=account_id).first()


def list_accounts(school, account_type=None, active_only=False) -> list[Account]:
    queryset = Account.objects.for_school(school)
    if account_type:
        queryset = queryset.filter(account_type=account_type)
    if active_only:
        queryset = queryset.filter(is_active=True)
    return list(queryset.order_by('code', 'name', 'id'))


@transaction.atomic
def install_default_chart(school) -> dict[str, Account]:
    """
    Create the starter chart of accounts and point the tenant's ledger
    settings at it. Existing accounts with the same code are reused.
    """
    accounts = {}
    mappings = {}
    for code, name, account_type, settings_field in DEFAULT_CHART:
        account = Account.objects.for_school(school).filter(code=code).first()
        if account is None:
            account = Account.objects.create(
                school=school,
                code=code,
                name=name,
                account_type=account_type,
            )
        accounts[code] = account
        if settings_field:
            mappings[settings_field] = account

    ledger_settings, _ = SchoolLedgerSettings.objects.get_or_create(school=school)
    for field_name, account in mappings.items():
        if getattr(ledger_settings, f'{field_name}_id') is None:
            setattr(ledger_settings, field_name, account)
    ledger_settings.full_clean()
    ledger_settings.save()
    return accounts
