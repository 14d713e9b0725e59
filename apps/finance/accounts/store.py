"""Append-only persistence of journal entries and their lines."""
from __future__ import annotations

import logging

from django.apps import apps
from django.db import transaction

from .exceptions import ConfigurationError
from .models import Account, JournalEntry, JournalEntryLine
from .policy import EntryDraft, validate_draft


logger = logging.getLogger(__name__)


SOURCE_MODEL_LABELS = {
    JournalEntry.SOURCE_FEE_PAYMENT: 'fees.FeeTransaction',
    JournalEntry.SOURCE_FEE_BILLING: 'fees.FeeTransaction',
    JournalEntry.SOURCE_INCOME: 'cashbook.SchoolIncome',
    JournalEntry.SOURCE_EXPENSE: 'cashbook.SchoolExpense',
}


def source_model_for(source_type):
    label = SOURCE_MODEL_LABELS.get(source_type)
    return apps.get_model(label) if label else None


def _checked_accounts(school, draft: EntryDraft) -> dict:
    account_ids = {line.account_id for line in draft.lines}
    accounts = Account.objects.for_school(school).in_bulk(account_ids)
    for account_id in sorted(account_ids):
        account = accounts.get(account_id)
        if account is None:
            raise ConfigurationError(
                f'Account {account_id} is not in the chart of accounts for {school.code}.',
                missing_mapping=f'account[{account_id}]',
            )
        if not account.is_active:
            raise ConfigurationError(
                f'Account {account} is inactive and cannot receive postings.',
                missing_mapping=f'account[{account_id}]',
            )
    return accounts


@transaction.atomic
def write_entry(school, draft: EntryDraft, *, posted_by=None, reverses=None) -> JournalEntry:
    validate_draft(draft)
    _checked_accounts(school, draft)

    entry = JournalEntry.objects.create(
        school=school,
        date=draft.date,
        description=draft.description,
        source_document_type=draft.source_type,
        source_document_id=draft.source_id,
        posted_by=posted_by,
        reverses=reverses,
    )
    JournalEntryLine.objects.bulk_create([
        JournalEntryLine(
            entry=entry,
            account_id=line.account_id,
            debit=line.debit,
            credit=line.credit,
            description=line.description[:255],
        )
        for line in draft.lines
    ])
    return entry


def find_entry_for_source(school, source_type, source_id):
    return JournalEntry.objects.for_school(school).filter(
        source_document_type=source_type,
        source_document_id=str(source_id),
    ).first()


def find_orphaned_entries(school) -> list[JournalEntry]:
    """Automated entries whose source record does not point back at them."""
    orphans = []
    entries = JournalEntry.objects.for_school(school).filter(
        source_document_type__in=JournalEntry.AUTOMATED_SOURCE_TYPES,
    ).order_by('date', 'id')
    for entry in entries:
        model = source_model_for(entry.source_document_type)
        if not model.objects.filter(pk=entry.source_document_id, journal_entry=entry).exists():
            orphans.append(entry)
    return orphans
