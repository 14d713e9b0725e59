"""
One-off historical backfill.

Walks a school's fee transactions, income and expenses, posts every record
that has no journal entry yet and writes the source links in bounded
batches. Safe to re-run: linked records are skipped, and entries whose link
was lost with a failed batch are adopted instead of duplicated.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from django.conf import settings
from django.db import DatabaseError, transaction
from django.utils import timezone

from apps.core.fees.models import FeeTransaction
from apps.core.students.models import Student, demo_class_filter
from apps.core.students.services import active_students_in_class, find_demo_class, mark_inactive
from apps.finance.cashbook.models import SchoolExpense, SchoolIncome

from .config import TenantLedgerConfig
from .posting import PostingResult, post_event


logger = logging.getLogger(__name__)

BATCH_HEADROOM = 0.9


def resolve_batch_limit(requested=None) -> int:
    ceiling = int(getattr(settings, 'LEDGER_STORE_MAX_BATCH_OPERATIONS', 500))
    headroom = int(ceiling * BATCH_HEADROOM)
    limit = requested or getattr(settings, 'LEDGER_WRITE_BATCH_LIMIT', headroom)
    return max(1, min(int(limit), headroom))


@dataclass
class BackfillReport:
    OUTCOME_NOTHING_TO_DO = 'nothing_to_do'
    OUTCOME_SUCCEEDED = 'succeeded'
    OUTCOME_PARTIAL = 'partial'

    total_records_scanned: int = 0
    postings_attempted: int = 0
    postings_succeeded: int = 0
    errors: list = field(default_factory=list)
    students_deactivated: int = 0
    batches_committed: int = 0
    cancelled: bool = False

    @property
    def outcome(self):
        if self.errors or self.cancelled:
            return self.OUTCOME_PARTIAL
        if self.postings_attempted == 0 and self.students_deactivated == 0:
            return self.OUTCOME_NOTHING_TO_DO
        return self.OUTCOME_SUCCEEDED

    @property
    def summary(self):
        text = (
            f'Backfill complete. Demo class students deactivated: {self.students_deactivated}. '
            f'Financial records processed: {self.total_records_scanned}. '
            f'Journal entries attempted: {self.postings_attempted}. '
            f'Journal entries created: {self.postings_succeeded}. '
            f'Errors: {len(self.errors)}.'
        )
        if self.cancelled:
            text = f'{text} Stopped before completion.'
        return text

    def as_dict(self):
        return {
            'outcome': self.outcome,
            'summary': self.summary,
            'total_records_scanned': self.total_records_scanned,
            'postings_attempted': self.postings_attempted,
            'postings_succeeded': self.postings_succeeded,
            'students_deactivated': self.students_deactivated,
            'batches_committed': self.batches_committed,
            'cancelled': self.cancelled,
            'errors': list(self.errors),
        }


@dataclass
class _PendingWrite:
    collection: str
    instance: object
    fields: tuple
    counts_as_posting: bool


class LinkBatch:
    """Pending row updates written together in one transaction."""

    def __init__(self, report: BackfillReport, limit: int):
        self.report = report
        self.limit = limit
        self._pending = []

    def __len__(self):
        return len(self._pending)

    @property
    def is_full(self):
        return len(self._pending) >= self.limit

    def add(self, collection, instance, fields, *, counts_as_posting=True):
        self._pending.append(_PendingWrite(collection, instance, tuple(fields), counts_as_posting))
        if self.is_full:
            self.flush()

    def flush(self):
        if not self._pending:
            return
        pending, self._pending = self._pending, []

        groups = {}
        for write in pending:
            groups.setdefault((type(write.instance), write.fields), []).append(write.instance)

        try:
            with transaction.atomic():
                for (model, fields), instances in groups.items():
                    model.objects.bulk_update(instances, list(fields))
        except DatabaseError as exc:
            logger.exception('Ledger backfill batch of %s writes failed', len(pending))
            for write in pending:
                self.report.errors.append(
                    f'{write.collection} {write.instance.pk}: batch write failed ({exc})'
                )
            return

        self.report.batches_committed += 1
        for write in pending:
            if write.counts_as_posting:
                self.report.postings_succeeded += 1
            elif isinstance(write.instance, Student):
                self.report.students_deactivated += 1
        logger.info(
            'Ledger backfill committed batch %s with %s writes',
            self.report.batches_committed,
            len(pending),
        )


class _Sweep:
    def __init__(self, school, report, batch, config, posted_by, should_stop):
        self.school = school
        self.report = report
        self.batch = batch
        self.config = config
        self.posted_by = posted_by
        self.should_stop = should_stop

    def _stop_requested(self):
        if self.should_stop is not None and self.should_stop():
            self.report.cancelled = True
            return True
        return False

    def deactivate_demo_students(self):
        demo_class = find_demo_class(self.school)
        if demo_class is None:
            return True
        now = timezone.now()
        for student in active_students_in_class(demo_class):
            if self._stop_requested():
                return False
            mark_inactive(student)
            student.updated_at = now
            self.batch.add(
                'students',
                student,
                ('status', 'is_active', 'updated_at'),
                counts_as_posting=False,
            )
        self.batch.flush()
        return True

    def process(self, collection, queryset):
        for record in queryset:
            if self._stop_requested():
                return False
            self.report.total_records_scanned += 1
            if record.journal_entry_id:
                continue

            self.report.postings_attempted += 1
            try:
                result = post_event(record, config=self.config, posted_by=self.posted_by, link=False)
            except Exception as exc:
                logger.exception(
                    'Backfill could not post %s %s',
                    collection,
                    record.pk,
                    extra={'school_id': self.school.id, 'collection': collection, 'source_id': record.pk},
                )
                self.report.errors.append(f'{collection} {record.pk}: {exc}')
                continue
            if result.status == PostingResult.POSTED:
                self.batch.add(collection, record, ('journal_entry',))
            elif result.status != PostingResult.ALREADY_POSTED:
                self.report.errors.append(f'{collection} {record.pk}: {result.message}')
        self.batch.flush()
        return True


def _collections(school):
    fee_transactions = (
        FeeTransaction.objects.for_school(school)
        .exclude(demo_class_filter('student__'))
        .select_related('school', 'student', 'fee_type')
        .order_by('student_id', 'transaction_date', 'id')
    )
    income = SchoolIncome.objects.for_school(school).select_related('school').order_by('date', 'id')
    expenses = SchoolExpense.objects.for_school(school).select_related('school').order_by('date', 'id')
    return (
        (FeeTransaction.LEDGER_COLLECTION, fee_transactions),
        (SchoolIncome.LEDGER_COLLECTION, income),
        (SchoolExpense.LEDGER_COLLECTION, expenses),
    )


def run_backfill(
    school,
    *,
    posted_by=None,
    batch_limit: Optional[int] = None,
    should_stop: Optional[Callable[[], bool]] = None,
) -> BackfillReport:
    report = BackfillReport()
    limit = resolve_batch_limit(batch_limit)
    log_context = {'school_id': school.id, 'batch_limit': limit}
    logger.info('Ledger backfill started for %s', school.code, extra=log_context)

    batch = LinkBatch(report, limit)
    try:
        config = TenantLedgerConfig.for_school(school)
        sweep = _Sweep(school, report, batch, config, posted_by, should_stop)
        if sweep.deactivate_demo_students():
            for collection, queryset in _collections(school):
                if not sweep.process(collection, queryset):
                    break
        batch.flush()
    except Exception as exc:
        logger.exception('Ledger backfill aborted for %s', school.code, extra=log_context)
        report.errors.append(f'Critical backfill error: {exc}')

    logger.info(
        report.summary,
        extra={**log_context, 'outcome': report.outcome, 'errors': len(report.errors)},
    )
    return report
