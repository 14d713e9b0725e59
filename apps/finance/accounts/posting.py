"""
Posting engine.

`post_event` turns one source financial event into exactly one journal entry.
Live posting writes the entry and the source's `journal_entry` link in one
transaction. The backfill passes `link=False` and writes links in batches;
an entry whose link never landed is adopted by the next call instead of
being written twice.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from .config import TenantLedgerConfig
from .exceptions import ConfigurationError, InvalidJournalLineError, LedgerError
from .models import JournalEntry
from .policy import TWOPLACES, DraftLine, EntryDraft, decide
from .store import find_entry_for_source, write_entry


logger = logging.getLogger(__name__)

_auto_posting_suspended = ContextVar('ledger_auto_posting_suspended', default=False)


@dataclass(frozen=True)
class PostingResult:
    POSTED = 'posted'
    ALREADY_POSTED = 'already_posted'
    CONFIGURATION_ERROR = 'configuration_error'
    STORE_ERROR = 'store_error'

    status: str
    entry_id: Optional[int] = None
    message: str = ''
    missing_mapping: str = ''
    recovered: bool = False

    @property
    def ok(self):
        return self.status in {self.POSTED, self.ALREADY_POSTED}

    @property
    def retryable(self):
        return self.status == self.STORE_ERROR


def _link(source, entry):
    source.journal_entry = entry
    type(source).objects.filter(pk=source.pk, journal_entry__isnull=True).update(journal_entry=entry)


def post_event(
    source,
    *,
    config: Optional[TenantLedgerConfig] = None,
    posted_by=None,
    link: bool = True,
) -> PostingResult:
    model = type(source)
    log_context = {
        'source_model': model._meta.label,
        'source_id': source.pk,
        'school_id': source.school_id,
    }

    try:
        with transaction.atomic():
            locked = model.objects.select_for_update().select_related('school').get(pk=source.pk)
            if locked.journal_entry_id:
                source.journal_entry_id = locked.journal_entry_id
                return PostingResult(PostingResult.ALREADY_POSTED, entry_id=locked.journal_entry_id)

            event = locked.to_ledger_event()
            orphan = find_entry_for_source(locked.school, event.source_type, event.source_id)
            if orphan is not None:
                if link:
                    _link(locked, orphan)
                source.journal_entry = orphan
                logger.warning(
                    'Adopted unlinked journal entry %s for %s %s',
                    orphan.id,
                    model._meta.label,
                    source.pk,
                    extra=log_context,
                )
                return PostingResult(PostingResult.POSTED, entry_id=orphan.id, recovered=True)

            if config is None:
                config = TenantLedgerConfig.for_school(locked.school)
            draft = decide(event, config)
            entry = write_entry(
                locked.school,
                draft,
                posted_by=posted_by or getattr(locked, 'recorded_by', None),
            )
            if link:
                _link(locked, entry)
    except ConfigurationError as exc:
        logger.warning(
            'Ledger posting skipped for %s %s: %s',
            model._meta.label,
            source.pk,
            exc,
            extra={**log_context, 'missing_mapping': exc.missing_mapping},
        )
        return PostingResult(
            PostingResult.CONFIGURATION_ERROR,
            message=str(exc),
            missing_mapping=exc.missing_mapping,
        )
    except IntegrityError as exc:
        existing = _existing_entry_for(source)
        if existing is not None:
            logger.info('Concurrent posting already recorded %s %s', model._meta.label, source.pk, extra=log_context)
            return PostingResult(PostingResult.ALREADY_POSTED, entry_id=existing.id)
        logger.exception('Ledger store rejected %s %s', model._meta.label, source.pk, extra=log_context)
        return PostingResult(PostingResult.STORE_ERROR, message=str(exc))
    except DatabaseError as exc:
        logger.exception('Ledger store failure for %s %s', model._meta.label, source.pk, extra=log_context)
        return PostingResult(PostingResult.STORE_ERROR, message=str(exc))

    source.journal_entry = entry
    logger.info(
        'Posted journal entry %s for %s %s',
        entry.id,
        model._meta.label,
        source.pk,
        extra={**log_context, 'entry_id': entry.id, 'linked': link},
    )
    return PostingResult(PostingResult.POSTED, entry_id=entry.id)


def _existing_entry_for(source):
    try:
        event = source.to_ledger_event()
        return find_entry_for_source(source.school, event.source_type, event.source_id)
    except DatabaseError:
        return None


def _post_committed(model, pk):
    source = model.objects.filter(pk=pk).first()
    if source is None:
        return None
    return post_event(source)


def schedule_posting(source):
    """Post a newly created source event once its own transaction commits."""
    if not getattr(settings, 'LEDGER_AUTO_POST_ENABLED', True) or _auto_posting_suspended.get():
        return
    model = type(source)
    pk = source.pk
    transaction.on_commit(lambda: _post_committed(model, pk), robust=True)


@contextmanager
def auto_posting_suspended():
    """Record source events without scheduling live postings, e.g. for historical imports."""
    token = _auto_posting_suspended.set(True)
    try:
        yield
    finally:
        _auto_posting_suspended.reset(token)


def reverse_journal_entry(entry: JournalEntry, *, posted_by=None, reason='', date=None) -> JournalEntry:
    if entry.source_document_type == JournalEntry.SOURCE_REVERSAL:
        raise LedgerError(f'Journal entry {entry.id} is itself a reversal.')
    if JournalEntry.objects.filter(reverses=entry).exists():
        raise LedgerError(f'Journal entry {entry.id} has already been reversed.')

    description = f'Reversal of JE-{entry.id}'
    if reason:
        description = f'{description}: {reason}'
    draft = EntryDraft(
        date=date or timezone.localdate(),
        description=description[:255],
        source_type=JournalEntry.SOURCE_REVERSAL,
        source_id=str(entry.id),
        lines=tuple(
            DraftLine(
                account_id=line.account_id,
                debit=line.debit,
                credit=line.credit,
                description=line.description,
            ).swapped()
            for line in entry.lines.all()
        ),
    )
    try:
        reversal = write_entry(entry.school, draft, posted_by=posted_by, reverses=entry)
    except IntegrityError:
        raise LedgerError(f'Journal entry {entry.id} has already been reversed.') from None
    logger.info('Reversed journal entry %s with %s', entry.id, reversal.id, extra={'school_id': entry.school_id})
    return reversal


def record_manual_entry(school, *, date, description, lines, posted_by=None) -> JournalEntry:
    """
    Write an operator-entered entry.

    `lines` is an iterable of DraftLine or of dicts with `account_id` and
    one of `debit`/`credit`.
    """
    def _amount(value):
        if value in (None, ''):
            return None
        return Decimal(str(value)).quantize(TWOPLACES)

    def _account_id(value):
        try:
            if isinstance(value, bool):
                raise ValueError(value)
            return int(str(value).strip())
        except ValueError:
            raise InvalidJournalLineError(
                f'Line account_id {value!r} is not a valid account id.',
                missing_mapping='account_id',
            ) from None

    draft_lines = tuple(
        line if isinstance(line, DraftLine) else DraftLine(
            account_id=_account_id(line['account_id']),
            debit=_amount(line.get('debit')),
            credit=_amount(line.get('credit')),
            description=line.get('description', ''),
        )
        for line in lines
    )
    draft = EntryDraft(
        date=date,
        description=description[:255],
        source_type=JournalEntry.SOURCE_MANUAL,
        source_id='',
        lines=draft_lines,
    )
    entry = write_entry(school, draft, posted_by=posted_by)
    logger.info('Recorded manual journal entry %s', entry.id, extra={'school_id': school.id})
    return entry
