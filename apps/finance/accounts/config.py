from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping, Optional


@dataclass(frozen=True)
class LedgerEvent:
    """Immutable snapshot of a source financial event."""

    source_type: str
    source_id: str
    amount: Decimal
    date: date
    description: str = ''
    payment_method: str = ''
    fee_type_id: Optional[int] = None
    fee_type_name: str = ''
    account_id: Optional[int] = None
    party_label: str = ''


@dataclass(frozen=True)
class TenantLedgerConfig:
    """Account mappings a school has configured for automatic posting."""

    school_id: int
    default_cash_account_id: Optional[int] = None
    default_accounts_receivable_account_id: Optional[int] = None
    default_bursary_expense_account_id: Optional[int] = None
    default_fee_revenue_account_id: Optional[int] = None
    fee_type_revenue_account_ids: Mapping[int, Optional[int]] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(
            self,
            'fee_type_revenue_account_ids',
            MappingProxyType(dict(self.fee_type_revenue_account_ids)),
        )

    @classmethod
    def for_school(cls, school) -> TenantLedgerConfig:
        from apps.core.fees.models import FeeType

        from .models import SchoolLedgerSettings

        settings_row = SchoolLedgerSettings.objects.filter(school=school).first()
        fee_type_accounts = dict(
            FeeType.objects.for_school(school).values_list('id', 'revenue_account_id')
        )
        if settings_row is None:
            return cls(school_id=school.id, fee_type_revenue_account_ids=fee_type_accounts)

        return cls(
            school_id=school.id,
            default_cash_account_id=settings_row.default_cash_account_id,
            default_accounts_receivable_account_id=settings_row.default_accounts_receivable_account_id,
            default_bursary_expense_account_id=settings_row.default_bursary_expense_account_id,
            default_fee_revenue_account_id=settings_row.default_fee_revenue_account_id,
            fee_type_revenue_account_ids=fee_type_accounts,
        )
