import json
from datetime import date
from decimal import Decimal
from io import StringIO
from unittest import mock

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.core.management.base import CommandError
from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase, override_settings
from django.urls import reverse

from apps.core.academics.models import SchoolClass
from apps.core.fees.models import FeeTransaction, FeeType
from apps.core.schools.models import School
from apps.core.students.models import Student
from apps.core.users.models import AuditLog
from apps.finance.cashbook.models import SchoolExpense, SchoolIncome

from . import store
from .backfill import BackfillReport, resolve_batch_limit, run_backfill
from .config import LedgerEvent, TenantLedgerConfig
from .exceptions import ConfigurationError, InvalidJournalLineError, LedgerError, UnbalancedEntryError
from .models import Account, JournalEntry, JournalEntryLine, SchoolLedgerSettings
from .policy import DraftLine, EntryDraft, decide, validate_draft
from .posting import PostingResult, auto_posting_suspended, post_event, record_manual_entry, reverse_journal_entry
from .registry import install_default_chart, list_accounts
from .statements import (
    account_ledger,
    balance_sheet,
    cash_accounts,
    cash_flow_statement,
    general_ledger,
    income_statement,
    trial_balance,
)
from .store import find_orphaned_entries, write_entry


def _lines(entry):
    return [
        (line.account_id, line.debit, line.credit)
        for line in entry.lines.order_by('id')
    ]


class LedgerTestCase(TestCase):
    def setUp(self):
        user_model = get_user_model()
        self.school = School.objects.create(name='Ledger School', code='ledger_school')
        self.accountant = user_model.objects.create_user(
            username='ledger_accountant',
            password='pass12345',
            role='accountant',
            school=self.school,
        )

        self.chart = install_default_chart(self.school)
        self.cash = self.chart['1000']
        self.receivable = self.chart['1200']
        self.capital = self.chart['3000']
        self.tuition_revenue = self.chart['4000']
        self.other_income = self.chart['4100']
        self.salaries = self.chart['5000']
        self.bursary_expense = self.chart['5100']
        self.exam_revenue = Account.objects.create(
            school=self.school,
            code='4200',
            name='Exam Fees',
            account_type=Account.TYPE_REVENUE,
        )

        self.exam_fee = FeeType.objects.create(school=self.school, name='Exam Fee', revenue_account=self.exam_revenue)
        self.uniform_fee = FeeType.objects.create(school=self.school, name='Uniform')

        self.school_class = SchoolClass.objects.create(school=self.school, name='P.5')
        self.student = Student.objects.create(
            school=self.school,
            registration_number='LED-001',
            first_name='Amina',
            last_name='Nakato',
            current_class=self.school_class,
        )

    def _payment(self, amount='50000', method=FeeTransaction.METHOD_CASH, fee_type=None, on=None, student=None):
        return FeeTransaction.objects.create(
            school=self.school,
            student=student or self.student,
            fee_type=fee_type,
            transaction_type=FeeTransaction.TYPE_CREDIT,
            amount=Decimal(amount),
            payment_method=method,
            transaction_date=on or date(2026, 2, 10),
            recorded_by=self.accountant,
        )

    def _billing(self, amount='300000', fee_type=None, on=None, student=None):
        return FeeTransaction.objects.create(
            school=self.school,
            student=student or self.student,
            fee_type=fee_type,
            transaction_type=FeeTransaction.TYPE_DEBIT,
            amount=Decimal(amount),
            transaction_date=on or date(2026, 2, 5),
            recorded_by=self.accountant,
        )

    def _income(self, amount='100000', account=None, on=None):
        return SchoolIncome.objects.create(
            school=self.school,
            description='Uniform sales',
            source='School shop',
            amount=Decimal(amount),
            account=account,
            date=on or date(2026, 2, 1),
            recorded_by=self.accountant,
        )

    def _expense(self, amount='20000', account=None, on=None):
        return SchoolExpense.objects.create(
            school=self.school,
            description='Teacher allowances',
            category='Salaries',
            amount=Decimal(amount),
            account=account,
            date=on or date(2026, 3, 1),
            recorded_by=self.accountant,
        )

    def _config(self, **overrides):
        values = {
            'school_id': self.school.id,
            'default_cash_account_id': self.cash.id,
            'default_accounts_receivable_account_id': self.receivable.id,
            'default_bursary_expense_account_id': self.bursary_expense.id,
            'default_fee_revenue_account_id': self.tuition_revenue.id,
            'fee_type_revenue_account_ids': {self.exam_fee.id: self.exam_revenue.id, self.uniform_fee.id: None},
        }
        values.update(overrides)
        return TenantLedgerConfig(**values)


class PostingPolicyTests(SimpleTestCase):
    def setUp(self):
        self.config = TenantLedgerConfig(
            school_id=1,
            default_cash_account_id=10,
            default_accounts_receivable_account_id=12,
            default_bursary_expense_account_id=51,
            default_fee_revenue_account_id=40,
            fee_type_revenue_account_ids={7: 42, 8: None},
        )

    def _event(self, source_type, **kwargs):
        values = {
            'source_type': source_type,
            'source_id': '99',
            'amount': Decimal('50000'),
            'date': date(2026, 3, 10),
            'party_label': 'Amina Nakato (LED-001)',
        }
        values.update(kwargs)
        return LedgerEvent(**values)

    def _draft_lines(self, draft):
        return [(line.account_id, line.debit, line.credit) for line in draft.lines]

    def test_cash_fee_payment_debits_cash_and_credits_fee_item_revenue(self):
        draft = decide(self._event('fee_payment', payment_method='cash', fee_type_id=7), self.config)

        self.assertEqual(
            self._draft_lines(draft),
            [(10, Decimal('50000.00'), None), (42, None, Decimal('50000.00'))],
        )
        self.assertEqual(draft.source_type, 'fee_payment')
        self.assertEqual(draft.source_id, '99')

    def test_bursary_payment_debits_bursary_expense_and_credits_receivable(self):
        draft = decide(self._event('fee_payment', payment_method='bursary', fee_type_id=7), self.config)

        self.assertEqual(
            self._draft_lines(draft),
            [(51, Decimal('50000.00'), None), (12, None, Decimal('50000.00'))],
        )

    def test_expense_debits_expense_account_and_credits_cash(self):
        draft = decide(self._event('expense', amount=Decimal('20000'), account_id=55), self.config)

        self.assertEqual(
            self._draft_lines(draft),
            [(55, Decimal('20000.00'), None), (10, None, Decimal('20000.00'))],
        )

    def test_income_debits_cash_and_credits_income_account(self):
        draft = decide(self._event('income', account_id=41), self.config)

        self.assertEqual(
            self._draft_lines(draft),
            [(10, Decimal('50000.00'), None), (41, None, Decimal('50000.00'))],
        )

    def test_billing_debits_receivable_and_credits_fee_item_revenue(self):
        draft = decide(self._event('fee_billing', fee_type_id=7), self.config)

        self.assertEqual(
            self._draft_lines(draft),
            [(12, Decimal('50000.00'), None), (42, None, Decimal('50000.00'))],
        )

    def test_payment_falls_back_to_default_fee_revenue(self):
        without_item = decide(self._event('fee_payment', payment_method='cash'), self.config)
        unmapped_item = decide(self._event('fee_payment', payment_method='cash', fee_type_id=8), self.config)

        self.assertEqual(without_item.lines[1].account_id, 40)
        self.assertEqual(unmapped_item.lines[1].account_id, 40)

    def test_billing_without_fee_item_names_fee_type_mapping(self):
        with self.assertRaises(ConfigurationError) as caught:
            decide(self._event('fee_billing'), self.config)

        self.assertEqual(caught.exception.missing_mapping, 'fee_transaction.fee_type')

    def test_billing_with_unmapped_fee_item_does_not_use_default(self):
        with self.assertRaises(ConfigurationError) as caught:
            decide(self._event('fee_billing', fee_type_id=8, fee_type_name='Uniform'), self.config)

        self.assertEqual(caught.exception.missing_mapping, 'fee_type[8].revenue_account')
        self.assertIn('Uniform', str(caught.exception))

    def test_missing_cash_account_is_named(self):
        config = TenantLedgerConfig(school_id=1, fee_type_revenue_account_ids={7: 42})

        with self.assertRaises(ConfigurationError) as caught:
            decide(self._event('fee_payment', payment_method='cash', fee_type_id=7), config)

        self.assertEqual(caught.exception.missing_mapping, 'default_cash_account')

    def test_missing_bursary_account_is_named(self):
        config = TenantLedgerConfig(school_id=1, default_accounts_receivable_account_id=12)

        with self.assertRaises(ConfigurationError) as caught:
            decide(self._event('fee_payment', payment_method='bursary'), config)

        self.assertEqual(caught.exception.missing_mapping, 'default_bursary_expense_account')

    def test_payment_without_item_or_default_revenue_is_named(self):
        config = TenantLedgerConfig(school_id=1, default_cash_account_id=10)

        with self.assertRaises(ConfigurationError) as caught:
            decide(self._event('fee_payment', payment_method='cash'), config)

        self.assertEqual(caught.exception.missing_mapping, 'default_fee_revenue_account')

    def test_income_without_account_is_named(self):
        with self.assertRaises(ConfigurationError) as caught:
            decide(self._event('income'), self.config)

        self.assertEqual(caught.exception.missing_mapping, 'income.account')

    def test_non_positive_amount_is_rejected(self):
        for amount in (Decimal('0'), Decimal('-5')):
            with self.subTest(amount=amount):
                with self.assertRaises(InvalidJournalLineError):
                    decide(self._event('income', amount=amount, account_id=41), self.config)

    def test_unknown_source_type_is_rejected(self):
        with self.assertRaises(ConfigurationError):
            decide(self._event('manual'), self.config)

    def test_validate_draft_rejects_unbalanced_entry(self):
        draft = EntryDraft(
            date=date(2026, 1, 1),
            description='Bad',
            source_type='manual',
            source_id='',
            lines=(DraftLine.dr(10, '100'), DraftLine.cr(40, '99.99')),
        )

        with self.assertRaises(UnbalancedEntryError):
            validate_draft(draft)

    def test_validate_draft_accepts_difference_within_tolerance(self):
        draft = EntryDraft(
            date=date(2026, 1, 1),
            description='Rounding',
            source_type='manual',
            source_id='',
            lines=(
                DraftLine(account_id=10, debit=Decimal('100.0005')),
                DraftLine(account_id=40, credit=Decimal('100.00')),
            ),
        )

        self.assertIs(validate_draft(draft), draft)

    def test_validate_draft_rejects_line_with_both_sides(self):
        draft = EntryDraft(
            date=date(2026, 1, 1),
            description='Bad',
            source_type='manual',
            source_id='',
            lines=(
                DraftLine(account_id=10, debit=Decimal('5'), credit=Decimal('5')),
                DraftLine(account_id=40, credit=Decimal('5')),
            ),
        )

        with self.assertRaises(InvalidJournalLineError):
            validate_draft(draft)

    def test_config_mapping_is_read_only(self):
        with self.assertRaises(TypeError):
            self.config.fee_type_revenue_account_ids[9] = 1


class AccountModelTests(LedgerTestCase):
    def test_type_cannot_change_once_referenced(self):
        post_event(self._income(account=self.other_income))
        self.other_income.account_type = Account.TYPE_EQUITY

        with self.assertRaises(ValidationError):
            self.other_income.save()

    def test_type_can_change_while_unreferenced(self):
        payable = self.chart['2000']
        payable.account_type = Account.TYPE_EQUITY
        payable.save()

        payable.refresh_from_db()
        self.assertEqual(payable.account_type, Account.TYPE_EQUITY)

    def test_referenced_account_cannot_be_deleted(self):
        post_event(self._income(account=self.other_income))

        with self.assertRaises(ValidationError):
            self.other_income.delete()
        self.assertTrue(Account.objects.filter(pk=self.other_income.pk).exists())

    def test_blank_name_is_rejected(self):
        with self.assertRaises(ValidationError):
            Account.objects.create(school=self.school, code='9999', name='  ', account_type=Account.TYPE_ASSET)

    def test_parent_must_share_type(self):
        with self.assertRaises(ValidationError):
            Account.objects.create(
                school=self.school,
                code='1010',
                name='Petty Cash',
                account_type=Account.TYPE_EXPENSE,
                parent=self.cash,
            )

    def test_ledger_settings_reject_wrong_account_type(self):
        ledger_settings = SchoolLedgerSettings.objects.get(school=self.school)
        ledger_settings.default_cash_account = self.salaries

        with self.assertRaises(ValidationError):
            ledger_settings.full_clean()

    def test_list_accounts_filters_by_type_and_activity(self):
        self.exam_revenue.is_active = False
        self.exam_revenue.save()

        revenue_codes = [account.code for account in list_accounts(self.school, Account.TYPE_REVENUE, active_only=True)]
        self.assertEqual(revenue_codes, ['4000', '4100'])

    def test_install_default_chart_is_idempotent(self):
        install_default_chart(self.school)

        self.assertEqual(Account.objects.for_school(self.school).filter(code='1000').count(), 1)
        ledger_settings = SchoolLedgerSettings.objects.get(school=self.school)
        self.assertEqual(ledger_settings.default_cash_account, self.cash)
        self.assertEqual(ledger_settings.default_fee_revenue_account, self.tuition_revenue)


class PostingEngineTests(LedgerTestCase):
    def test_cash_payment_posts_balanced_entry_and_links_source(self):
        payment = self._payment(fee_type=self.exam_fee)

        result = post_event(payment)

        self.assertEqual(result.status, PostingResult.POSTED)
        self.assertFalse(result.recovered)
        entry = JournalEntry.objects.get(pk=result.entry_id)
        self.assertEqual(
            _lines(entry),
            [(self.cash.id, Decimal('50000.00'), None), (self.exam_revenue.id, None, Decimal('50000.00'))],
        )
        self.assertEqual(entry.source_document_type, JournalEntry.SOURCE_FEE_PAYMENT)
        self.assertEqual(entry.source_document_id, str(payment.id))
        self.assertEqual(entry.date, date(2026, 2, 10))
        self.assertEqual(entry.posted_by, self.accountant)
        payment.refresh_from_db()
        self.assertEqual(payment.journal_entry_id, entry.id)

    def test_bursary_payment_uses_bursary_and_receivable_accounts(self):
        result = post_event(self._payment(method=FeeTransaction.METHOD_BURSARY, fee_type=self.exam_fee))

        entry = JournalEntry.objects.get(pk=result.entry_id)
        self.assertEqual(
            _lines(entry),
            [(self.bursary_expense.id, Decimal('50000.00'), None), (self.receivable.id, None, Decimal('50000.00'))],
        )

    def test_expense_posts_against_expense_account_and_cash(self):
        result = post_event(self._expense(account=self.salaries))

        entry = JournalEntry.objects.get(pk=result.entry_id)
        self.assertEqual(
            _lines(entry),
            [(self.salaries.id, Decimal('20000.00'), None), (self.cash.id, None, Decimal('20000.00'))],
        )

    def test_posting_twice_creates_one_entry(self):
        payment = self._payment(fee_type=self.exam_fee)

        first = post_event(payment)
        second = post_event(payment)

        self.assertEqual(first.status, PostingResult.POSTED)
        self.assertEqual(second.status, PostingResult.ALREADY_POSTED)
        self.assertEqual(second.entry_id, first.entry_id)
        self.assertEqual(JournalEntry.objects.count(), 1)

    def test_stale_instance_is_reported_as_already_posted(self):
        payment = self._payment(fee_type=self.exam_fee)
        stale = FeeTransaction.objects.get(pk=payment.pk)
        post_event(payment)

        result = post_event(stale)

        self.assertEqual(result.status, PostingResult.ALREADY_POSTED)
        self.assertEqual(JournalEntry.objects.count(), 1)

    def test_configuration_error_writes_nothing(self):
        billing = self._billing(fee_type=self.uniform_fee)

        result = post_event(billing)

        self.assertEqual(result.status, PostingResult.CONFIGURATION_ERROR)
        self.assertEqual(result.missing_mapping, f'fee_type[{self.uniform_fee.id}].revenue_account')
        self.assertFalse(result.retryable)
        self.assertEqual(JournalEntry.objects.count(), 0)
        billing.refresh_from_db()
        self.assertIsNone(billing.journal_entry_id)

    def test_missing_tenant_settings_is_configuration_error(self):
        SchoolLedgerSettings.objects.filter(school=self.school).delete()

        result = post_event(self._income(account=self.other_income))

        self.assertEqual(result.status, PostingResult.CONFIGURATION_ERROR)
        self.assertEqual(result.missing_mapping, 'default_cash_account')

    def test_explicit_config_overrides_stored_settings(self):
        income = self._income(account=self.other_income)

        result = post_event(income, config=self._config(default_cash_account_id=self.chart['1100'].id))

        entry = JournalEntry.objects.get(pk=result.entry_id)
        self.assertEqual(entry.lines.order_by('id').first().account, self.chart['1100'])

    def test_account_from_another_school_is_rejected(self):
        other_school = School.objects.create(name='Other', code='other_ledger')
        foreign_cash = Account.objects.create(school=other_school, code='1000', name='Cash', account_type=Account.TYPE_ASSET)

        result = post_event(self._income(account=self.other_income), config=self._config(default_cash_account_id=foreign_cash.id))

        self.assertEqual(result.status, PostingResult.CONFIGURATION_ERROR)
        self.assertEqual(result.missing_mapping, f'account[{foreign_cash.id}]')
        self.assertEqual(JournalEntry.objects.count(), 0)

    def test_inactive_account_is_rejected(self):
        self.other_income.is_active = False
        self.other_income.save()

        result = post_event(self._income(account=self.other_income))

        self.assertEqual(result.status, PostingResult.CONFIGURATION_ERROR)

    def test_unlinked_entry_is_adopted_instead_of_duplicated(self):
        income = self._income(account=self.other_income)
        first = post_event(income, link=False)
        income.refresh_from_db()
        self.assertIsNone(income.journal_entry_id)

        result = post_event(income)

        self.assertEqual(result.status, PostingResult.POSTED)
        self.assertTrue(result.recovered)
        self.assertEqual(result.entry_id, first.entry_id)
        self.assertEqual(JournalEntry.objects.count(), 1)
        income.refresh_from_db()
        self.assertEqual(income.journal_entry_id, first.entry_id)

    def test_concurrent_insert_is_reported_as_already_posted(self):
        income = self._income(account=self.other_income)
        winner = post_event(income, link=False)
        real_lookup = store.find_entry_for_source
        calls = []

        def miss_first_lookup(*args):
            calls.append(args)
            if len(calls) == 1:
                return None
            return real_lookup(*args)

        with mock.patch('apps.finance.accounts.posting.find_entry_for_source', side_effect=miss_first_lookup):
            result = post_event(income)

        self.assertEqual(result.status, PostingResult.ALREADY_POSTED)
        self.assertEqual(result.entry_id, winner.entry_id)
        self.assertEqual(JournalEntry.objects.count(), 1)

    def test_store_failure_is_retryable(self):
        income = self._income(account=self.other_income)

        with mock.patch('apps.finance.accounts.posting.write_entry', side_effect=DatabaseError('disk I/O error')):
            result = post_event(income)

        self.assertEqual(result.status, PostingResult.STORE_ERROR)
        self.assertTrue(result.retryable)
        self.assertIn('disk I/O error', result.message)
        income.refresh_from_db()
        self.assertIsNone(income.journal_entry_id)

        self.assertEqual(post_event(income).status, PostingResult.POSTED)

    def test_every_generated_entry_balances(self):
        post_event(self._payment(fee_type=self.exam_fee))
        post_event(self._payment(amount='1234.56', method=FeeTransaction.METHOD_MOBILE_MONEY))
        post_event(self._payment(amount='777.77', method=FeeTransaction.METHOD_BURSARY))
        post_event(self._billing(fee_type=self.exam_fee))
        post_event(self._income(amount='0.01', account=self.other_income))
        post_event(self._expense(amount='99999.99', account=self.salaries))

        self.assertEqual(JournalEntry.objects.count(), 6)
        for entry in JournalEntry.objects.all():
            total_debit, total_credit = entry.totals()
            self.assertLess(abs(total_debit - total_credit), Decimal('0.001'))

    def test_entries_are_immutable(self):
        result = post_event(self._income(account=self.other_income))
        entry = JournalEntry.objects.get(pk=result.entry_id)
        entry.description = 'Edited'

        with self.assertRaises(ValidationError):
            entry.save()
        with self.assertRaises(ValidationError):
            entry.delete()

    def test_source_records_cannot_be_deleted(self):
        income = self._income(account=self.other_income)

        with self.assertRaises(ValidationError):
            income.delete()


class LiveSignalPostingTests(LedgerTestCase):
    def test_new_payment_is_posted_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True):
            payment = self._payment(fee_type=self.exam_fee)

        payment.refresh_from_db()
        self.assertIsNotNone(payment.journal_entry_id)

    def test_failed_posting_keeps_the_event(self):
        with self.captureOnCommitCallbacks(execute=True):
            billing = self._billing(fee_type=self.uniform_fee)

        self.assertTrue(FeeTransaction.objects.filter(pk=billing.pk).exists())
        billing.refresh_from_db()
        self.assertIsNone(billing.journal_entry_id)

    def test_income_and_expense_are_posted_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True):
            income = self._income(account=self.other_income)
            expense = self._expense(account=self.salaries)

        income.refresh_from_db()
        expense.refresh_from_db()
        self.assertTrue(income.is_posted)
        self.assertTrue(expense.is_posted)

    @override_settings(LEDGER_AUTO_POST_ENABLED=False)
    def test_auto_posting_can_be_disabled(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            self._income(account=self.other_income)

        self.assertEqual(callbacks, [])
        self.assertEqual(JournalEntry.objects.count(), 0)

    def test_auto_posting_can_be_suspended_for_imports(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            with auto_posting_suspended():
                self._income(account=self.other_income)

        self.assertEqual(callbacks, [])
        self.assertEqual(JournalEntry.objects.count(), 0)


class ReversalAndManualEntryTests(LedgerTestCase):
    def test_reversal_swaps_debits_and_credits(self):
        result = post_event(self._income(account=self.other_income))
        original = JournalEntry.objects.get(pk=result.entry_id)

        reversal = reverse_journal_entry(original, posted_by=self.accountant, reason='Duplicate receipt', date=date(2026, 2, 2))

        self.assertEqual(reversal.reverses, original)
        self.assertEqual(reversal.source_document_type, JournalEntry.SOURCE_REVERSAL)
        self.assertIn('Duplicate receipt', reversal.description)
        self.assertEqual(
            _lines(reversal),
            [(self.cash.id, None, Decimal('100000.00')), (self.other_income.id, Decimal('100000.00'), None)],
        )
        tb = trial_balance(self.school, date(2026, 12, 31))
        self.assertEqual(tb.rows, [])

    def test_entry_can_only_be_reversed_once(self):
        result = post_event(self._income(account=self.other_income))
        original = JournalEntry.objects.get(pk=result.entry_id)
        reversal = reverse_journal_entry(original)

        with self.assertRaises(LedgerError):
            reverse_journal_entry(original)
        with self.assertRaises(LedgerError):
            reverse_journal_entry(reversal)

    def test_manual_entry_is_validated_and_written(self):
        entry = record_manual_entry(
            self.school,
            date=date(2026, 1, 2),
            description='Opening capital',
            lines=[
                {'account_id': self.cash.id, 'debit': '250000'},
                {'account_id': self.capital.id, 'credit': '250000'},
            ],
            posted_by=self.accountant,
        )

        self.assertEqual(entry.source_document_type, JournalEntry.SOURCE_MANUAL)
        self.assertEqual(entry.totals(), (Decimal('250000.00'), Decimal('250000.00')))

    def test_unbalanced_manual_entry_is_rejected(self):
        with self.assertRaises(UnbalancedEntryError):
            record_manual_entry(
                self.school,
                date=date(2026, 1, 2),
                description='Typo',
                lines=[
                    {'account_id': self.cash.id, 'debit': '250000'},
                    {'account_id': self.capital.id, 'credit': '25000'},
                ],
            )
        self.assertEqual(JournalEntry.objects.count(), 0)


class BackfillTests(LedgerTestCase):
    def test_income_with_missing_account_is_reported(self):
        self._income(account=self.other_income)
        self._income(account=self.other_income, amount='5000')
        broken = self._income(account=None, amount='700')

        report = run_backfill(self.school, posted_by=self.accountant)

        self.assertEqual(report.postings_attempted, 3)
        self.assertEqual(report.postings_succeeded, 2)
        self.assertEqual(len(report.errors), 1)
        self.assertIn(f'income {broken.id}', report.errors[0])
        self.assertIn('Income record has no revenue account', report.errors[0])
        self.assertEqual(report.outcome, BackfillReport.OUTCOME_PARTIAL)

    def test_second_run_creates_nothing_new(self):
        self._payment(fee_type=self.exam_fee)
        self._billing(fee_type=self.uniform_fee)
        self._income(account=self.other_income)
        self._expense(account=self.salaries)

        first = run_backfill(self.school)
        entries_after_first = JournalEntry.objects.count()
        second = run_backfill(self.school)

        self.assertEqual(first.postings_succeeded, 3)
        self.assertEqual(second.postings_succeeded, 0)
        self.assertLessEqual(len(second.errors), len(first.errors))
        self.assertEqual(JournalEntry.objects.count(), entries_after_first)
        self.assertEqual(second.total_records_scanned, first.total_records_scanned)

    def test_fixing_configuration_lets_rerun_post_remaining_records(self):
        billing = self._billing(fee_type=self.uniform_fee)
        first = run_backfill(self.school)
        self.assertEqual(len(first.errors), 1)
        self.assertTrue(first.errors[0].startswith(f'fee_transactions {billing.id}:'))

        self.uniform_fee.revenue_account = self.tuition_revenue
        self.uniform_fee.save()
        second = run_backfill(self.school)

        self.assertEqual(second.errors, [])
        self.assertEqual(second.postings_succeeded, 1)
        self.assertEqual(second.outcome, BackfillReport.OUTCOME_SUCCEEDED)

    def test_already_posted_records_are_scanned_but_skipped(self):
        post_event(self._income(account=self.other_income))
        self._income(account=self.other_income, amount='10')

        report = run_backfill(self.school)

        self.assertEqual(report.total_records_scanned, 2)
        self.assertEqual(report.postings_attempted, 1)
        self.assertEqual(report.postings_succeeded, 1)

    def test_collections_are_swept_fee_transactions_first(self):
        self._expense(account=self.salaries, on=date(2025, 1, 1))
        self._income(account=self.other_income, on=date(2025, 1, 2))
        self._payment(fee_type=self.exam_fee, on=date(2026, 6, 1))

        run_backfill(self.school)

        self.assertEqual(
            list(JournalEntry.objects.order_by('id').values_list('source_document_type', flat=True)),
            ['fee_payment', 'income', 'expense'],
        )

    def test_demo_class_students_are_deactivated_and_skipped(self):
        demo_class = SchoolClass.objects.create(school=self.school, name='Demo Class')
        demo_student = Student.objects.create(
            school=self.school,
            registration_number='DEMO-1',
            first_name='Test',
            current_class=demo_class,
        )
        self._payment(student=demo_student, fee_type=self.exam_fee)
        self._payment(fee_type=self.exam_fee)

        report = run_backfill(self.school)

        demo_student.refresh_from_db()
        self.assertEqual(demo_student.status, Student.STATUS_INACTIVE)
        self.assertFalse(demo_student.is_active)
        self.assertEqual(report.students_deactivated, 1)
        self.assertEqual(report.total_records_scanned, 1)
        self.assertEqual(report.postings_succeeded, 1)
        self.assertFalse(JournalEntry.objects.filter(description__contains='DEMO-1').exists())

    def test_empty_school_has_nothing_to_do(self):
        report = run_backfill(self.school)

        self.assertEqual(report.outcome, BackfillReport.OUTCOME_NOTHING_TO_DO)
        self.assertIn('Journal entries created: 0', report.summary)

    def test_batch_limit_stays_under_store_ceiling(self):
        self.assertEqual(resolve_batch_limit(), 450)
        self.assertEqual(resolve_batch_limit(1000), 450)
        self.assertEqual(resolve_batch_limit(3), 3)
        with self.settings(LEDGER_STORE_MAX_BATCH_OPERATIONS=10):
            self.assertEqual(resolve_batch_limit(), 9)

    def test_links_are_written_in_batches(self):
        for index in range(5):
            self._income(account=self.other_income, amount=str(100 + index))

        report = run_backfill(self.school, batch_limit=2)

        self.assertEqual(report.batches_committed, 3)
        self.assertEqual(report.postings_succeeded, 5)
        self.assertFalse(SchoolIncome.objects.unposted().exists())

    def test_failed_batch_leaves_adoptable_entries(self):
        incomes = [self._income(account=self.other_income, amount=str(10 + index)) for index in range(3)]

        with mock.patch.object(SchoolIncome.objects, 'bulk_update', side_effect=DatabaseError('database is locked')):
            failed = run_backfill(self.school)

        self.assertEqual(failed.postings_succeeded, 0)
        self.assertEqual(len(failed.errors), 3)
        for income, error in zip(incomes, failed.errors):
            self.assertTrue(error.startswith(f'income {income.id}: batch write failed'))
        self.assertEqual(len(find_orphaned_entries(self.school)), 3)

        recovered = run_backfill(self.school)

        self.assertEqual(recovered.errors, [])
        self.assertEqual(recovered.postings_succeeded, 3)
        self.assertEqual(JournalEntry.objects.count(), 3)
        self.assertEqual(find_orphaned_entries(self.school), [])

    def test_stop_request_flushes_and_reports_cancelled(self):
        for index in range(5):
            self._income(account=self.other_income, amount=str(100 + index))
        answers = iter([False, False, True])

        report = run_backfill(self.school, should_stop=lambda: next(answers, True))

        self.assertTrue(report.cancelled)
        self.assertEqual(report.postings_succeeded, 2)
        self.assertEqual(SchoolIncome.objects.posted().count(), 2)
        self.assertEqual(report.outcome, BackfillReport.OUTCOME_PARTIAL)

    def test_unexpected_failure_still_returns_report(self):
        self._income(account=self.other_income)

        with mock.patch(
            'apps.finance.accounts.backfill.TenantLedgerConfig.for_school',
            side_effect=RuntimeError('settings table missing'),
        ):
            report = run_backfill(self.school)

        self.assertEqual(report.errors, ['Critical backfill error: settings table missing'])
        self.assertEqual(report.postings_attempted, 0)

    def test_broken_record_does_not_stop_later_records(self):
        broken = self._income(account=self.other_income, amount='1000')
        second = self._income(account=self.other_income, amount='2000')
        third = self._income(account=self.other_income, amount='3000')
        build_event = SchoolIncome.to_ledger_event

        def to_ledger_event(record):
            if record.pk == broken.pk:
                raise ValueError('corrupt record')
            return build_event(record)

        with mock.patch.object(SchoolIncome, 'to_ledger_event', to_ledger_event):
            report = run_backfill(self.school)

        self.assertEqual(report.errors, [f'{SchoolIncome.LEDGER_COLLECTION} {broken.pk}: corrupt record'])
        self.assertEqual(report.total_records_scanned, 3)
        self.assertEqual(report.postings_attempted, 3)
        self.assertEqual(report.postings_succeeded, 2)
        self.assertEqual(
            set(SchoolIncome.objects.posted().values_list('id', flat=True)),
            {second.id, third.id},
        )
        self.assertEqual(JournalEntry.objects.count(), 2)


class OrphanDetectionTests(LedgerTestCase):
    def test_manual_and_linked_entries_are_not_orphans(self):
        post_event(self._income(account=self.other_income))
        record_manual_entry(
            self.school,
            date=date(2026, 1, 2),
            description='Opening capital',
            lines=[
                DraftLine.dr(self.cash.id, '1000'),
                DraftLine.cr(self.capital.id, '1000'),
            ],
        )

        self.assertEqual(find_orphaned_entries(self.school), [])

    def test_unlinked_entry_is_an_orphan(self):
        income = self._income(account=self.other_income)
        result = post_event(income, link=False)

        self.assertEqual([entry.id for entry in find_orphaned_entries(self.school)], [result.entry_id])


class StatementTests(LedgerTestCase):
    def _post_sample_activity(self):
        for source in (
            self._income(account=self.other_income, on=date(2026, 2, 1)),
            self._billing(fee_type=self.exam_fee, on=date(2026, 2, 5)),
            self._payment(fee_type=self.exam_fee, on=date(2026, 2, 10)),
            self._expense(account=self.salaries, on=date(2026, 3, 1)),
        ):
            self.assertEqual(post_event(source).status, PostingResult.POSTED)

    def test_trial_balance_columns_and_totals(self):
        self._post_sample_activity()

        tb = trial_balance(self.school, date(2026, 3, 31))

        rows = {row.code: (row.debit_balance, row.credit_balance) for row in tb.rows}
        self.assertEqual(rows['1000'], (Decimal('130000.00'), Decimal('0.00')))
        self.assertEqual(rows['1200'], (Decimal('300000.00'), Decimal('0.00')))
        self.assertEqual(rows['4100'], (Decimal('0.00'), Decimal('100000.00')))
        self.assertEqual(rows['4200'], (Decimal('0.00'), Decimal('350000.00')))
        self.assertEqual(rows['5000'], (Decimal('20000.00'), Decimal('0.00')))
        self.assertNotIn('4000', rows)
        self.assertEqual(tb.total_debits, Decimal('450000.00'))
        self.assertEqual(tb.total_credits, Decimal('450000.00'))
        self.assertTrue(tb.is_balanced)
        self.assertEqual(tb.warnings, [])

    def test_trial_balance_ignores_later_entries(self):
        self._post_sample_activity()
        before = trial_balance(self.school, date(2026, 3, 31)).as_dict()

        post_event(self._income(account=self.other_income, amount='7000', on=date(2026, 5, 1)))

        self.assertEqual(trial_balance(self.school, date(2026, 3, 31)).as_dict(), before)
        self.assertNotEqual(trial_balance(self.school, date(2026, 5, 1)).as_dict(), before)

    def test_abnormal_balance_moves_to_opposite_column(self):
        post_event(self._expense(account=self.salaries))

        tb = trial_balance(self.school, date(2026, 3, 31))

        cash_row = next(row for row in tb.rows if row.account_id == self.cash.id)
        self.assertEqual(cash_row.debit_balance, Decimal('0.00'))
        self.assertEqual(cash_row.credit_balance, Decimal('20000.00'))

    def test_unbalanced_ledger_is_reported_as_warning(self):
        entry = JournalEntry.objects.create(
            school=self.school,
            date=date(2026, 1, 5),
            description='Imported without its second line',
            source_document_type=JournalEntry.SOURCE_MANUAL,
        )
        JournalEntryLine.objects.create(entry=entry, account=self.cash, debit=Decimal('10.00'))

        tb = trial_balance(self.school, date(2026, 1, 31))
        sheet = balance_sheet(self.school, date(2026, 1, 31))

        self.assertFalse(tb.is_balanced)
        self.assertEqual(tb.warnings[0].code, 'trial_balance_unbalanced')
        self.assertFalse(sheet.is_balanced)
        self.assertEqual(sheet.warnings[0].difference, Decimal('10.00'))

    def test_income_statement_net_income_is_exact(self):
        self._post_sample_activity()
        post_event(self._income(account=self.other_income, amount='0.07', on=date(2026, 3, 2)))
        post_event(self._expense(account=self.salaries, amount='0.03', on=date(2026, 3, 3)))

        statement = income_statement(self.school, date(2026, 1, 1), date(2026, 3, 31))

        self.assertEqual(statement.total_revenue, Decimal('450000.07'))
        self.assertEqual(statement.total_expenses, Decimal('20000.03'))
        self.assertEqual(statement.net_income, statement.total_revenue - statement.total_expenses)
        self.assertEqual(statement.net_income, Decimal('430000.04'))
        self.assertEqual([line.code for line in statement.revenue_lines], ['4100', '4200'])

    def test_income_statement_respects_window(self):
        self._post_sample_activity()

        statement = income_statement(self.school, date(2026, 3, 1), date(2026, 3, 31))

        self.assertEqual(statement.total_revenue, Decimal('0.00'))
        self.assertEqual(statement.total_expenses, Decimal('20000.00'))
        self.assertEqual(statement.net_income, Decimal('-20000.00'))

    def test_balance_sheet_folds_net_income_into_equity(self):
        self._post_sample_activity()

        sheet = balance_sheet(self.school, date(2026, 3, 31))

        self.assertEqual(sheet.period_start, date(2026, 1, 1))
        self.assertEqual(sheet.total_assets, Decimal('430000.00'))
        self.assertEqual(sheet.total_liabilities, Decimal('0.00'))
        self.assertEqual(sheet.net_income, Decimal('430000.00'))
        self.assertEqual(sheet.total_liabilities_and_equity, Decimal('430000.00'))
        self.assertTrue(sheet.is_balanced)
        self.assertEqual(sheet.warnings, [])

    def test_balance_sheet_carries_prior_period_results(self):
        self._post_sample_activity()
        post_event(self._income(account=self.other_income, amount='10000', on=date(2025, 12, 15)))

        sheet = balance_sheet(self.school, date(2026, 3, 31))

        self.assertEqual(sheet.total_assets, Decimal('440000.00'))
        self.assertEqual(sheet.net_income, Decimal('430000.00'))
        self.assertEqual(sheet.retained_earnings, Decimal('10000.00'))
        self.assertTrue(sheet.is_balanced)

    def test_balance_sheet_period_start_can_be_overridden(self):
        self._post_sample_activity()

        sheet = balance_sheet(self.school, date(2026, 3, 31), period_start=date(2026, 3, 1))

        self.assertEqual(sheet.net_income, Decimal('-20000.00'))
        self.assertEqual(sheet.retained_earnings, Decimal('450000.00'))
        self.assertTrue(sheet.is_balanced)

    def test_balance_sheet_ignores_activity_after_as_of(self):
        post_event(self._income(account=self.other_income, amount='5000', on=date(2026, 2, 1)))
        post_event(self._income(account=self.other_income, amount='100000', on=date(2026, 5, 1)))

        sheet = balance_sheet(self.school, date(2026, 3, 1), period_start=date(2026, 6, 1))

        self.assertEqual(sheet.total_assets, Decimal('5000.00'))
        self.assertEqual(sheet.retained_earnings, Decimal('5000.00'))
        self.assertEqual(sheet.net_income, Decimal('0.00'))
        self.assertTrue(sheet.is_balanced)
        self.assertEqual(sheet.warnings, [])

    def test_balance_sheet_includes_equity_accounts(self):
        record_manual_entry(
            self.school,
            date=date(2026, 1, 2),
            description='Opening capital',
            lines=[
                {'account_id': self.cash.id, 'debit': '250000'},
                {'account_id': self.capital.id, 'credit': '250000'},
            ],
        )

        sheet = balance_sheet(self.school, date(2026, 3, 31))

        self.assertEqual(sheet.total_equity_accounts, Decimal('250000.00'))
        self.assertEqual([line.code for line in sheet.equity], ['3000'])
        self.assertTrue(sheet.is_balanced)

    def test_account_ledger_running_balance(self):
        self._post_sample_activity()

        ledger = account_ledger(self.school, self.cash, date(2026, 2, 1), date(2026, 3, 31))

        self.assertEqual(ledger.opening_balance, Decimal('0.00'))
        self.assertEqual(
            [line.balance_display for line in ledger.lines],
            ['100000.00 DR', '150000.00 DR', '130000.00 DR'],
        )
        self.assertEqual(ledger.closing_balance, Decimal('130000.00'))

    def test_account_ledger_opening_balance_and_credit_side(self):
        self._post_sample_activity()

        ledger = account_ledger(self.school, self.exam_revenue, date(2026, 2, 8), date(2026, 3, 31))

        self.assertEqual(ledger.opening_balance, Decimal('300000.00'))
        self.assertEqual([line.balance_display for line in ledger.lines], ['350000.00 CR'])

    def test_cash_flow_statement_splits_receipts_and_payments(self):
        record_manual_entry(
            self.school,
            date=date(2026, 1, 2),
            description='Opening capital',
            lines=[
                {'account_id': self.cash.id, 'debit': '250000'},
                {'account_id': self.capital.id, 'credit': '250000'},
            ],
        )
        self._post_sample_activity()

        statement = cash_flow_statement(self.school, date(2026, 2, 1), date(2026, 3, 31))

        self.assertEqual(statement.cash_account_ids, (self.cash.id,))
        self.assertEqual(statement.opening_cash, Decimal('250000.00'))
        self.assertEqual(statement.fee_receipts, Decimal('50000.00'))
        self.assertEqual(statement.other_receipts, Decimal('100000.00'))
        self.assertEqual(statement.operating_payments, Decimal('20000.00'))
        self.assertEqual(statement.other_movements, Decimal('0.00'))
        self.assertEqual(statement.net_change, Decimal('130000.00'))
        self.assertEqual(statement.closing_cash, Decimal('380000.00'))
        self.assertEqual(statement.as_dict()['inflows']['total'], '150000.00')

    def test_cash_flow_statement_reports_reversals_as_other_movements(self):
        expense = self._expense(account=self.salaries, on=date(2026, 3, 1))
        result = post_event(expense)
        reverse_journal_entry(JournalEntry.objects.get(pk=result.entry_id), date=date(2026, 3, 15))

        statement = cash_flow_statement(self.school, date(2026, 3, 1), date(2026, 3, 31))

        self.assertEqual(statement.operating_payments, Decimal('20000.00'))
        self.assertEqual(statement.other_movements, Decimal('20000.00'))
        self.assertEqual(statement.net_change, Decimal('0.00'))
        self.assertEqual(statement.closing_cash, statement.opening_cash + statement.net_change)

    def test_cash_accounts_fall_back_to_cash_and_bank_names(self):
        SchoolLedgerSettings.objects.filter(school=self.school).update(default_cash_account=None)

        self.assertEqual([account.code for account in cash_accounts(self.school)], ['1000', '1100'])

    def test_cash_flow_without_cash_account_is_reported_as_warning(self):
        empty_school = School.objects.create(name='No Chart School', code='no_chart')

        statement = cash_flow_statement(empty_school, date(2026, 1, 1), date(2026, 12, 31))

        self.assertEqual(statement.cash_account_ids, ())
        self.assertEqual(statement.closing_cash, Decimal('0.00'))
        self.assertEqual([warning.code for warning in statement.warnings], ['cash_account_missing'])


class LedgerViewTests(LedgerTestCase):
    def setUp(self):
        super().setUp()
        self.client.force_login(self.accountant)

    def test_trial_balance_view_returns_amounts_as_strings(self):
        post_event(self._income(account=self.other_income))

        response = self.client.get(reverse('ledger:trial_balance'), {'as_of': '2026-03-31'})

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload['total_debits'], '100000.00')
        self.assertTrue(payload['is_balanced'])

    def test_invalid_date_is_rejected(self):
        response = self.client.get(reverse('ledger:trial_balance'), {'as_of': '31/03/2026'})

        self.assertEqual(response.status_code, 400)

    def test_income_statement_view_validates_window(self):
        response = self.client.get(
            reverse('ledger:income_statement'),
            {'from': '2026-04-01', 'to': '2026-03-01'},
        )

        self.assertEqual(response.status_code, 400)

    def test_balance_sheet_view(self):
        post_event(self._income(account=self.other_income))

        response = self.client.get(reverse('ledger:balance_sheet'), {'as_of': '2026-03-31'})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['total_assets'], '100000.00')

    def test_cash_flow_statement_view(self):
        post_event(self._income(account=self.other_income))
        post_event(self._expense(account=self.salaries))

        response = self.client.get(reverse('ledger:cash_flow_statement'), {'from': '2026-01-01', 'to': '2026-03-31'})
        reversed_window = self.client.get(reverse('ledger:cash_flow_statement'), {'from': '2026-04-01', 'to': '2026-03-31'})

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload['inflows']['other_income'], '100000.00')
        self.assertEqual(payload['outflows']['operating_expenses'], '20000.00')
        self.assertEqual(payload['closing_cash'], '80000.00')
        self.assertEqual(reversed_window.status_code, 400)

    def test_account_ledger_view_is_scoped_to_school(self):
        other_school = School.objects.create(name='Other', code='other_view')
        foreign = Account.objects.create(school=other_school, code='1000', name='Cash', account_type=Account.TYPE_ASSET)

        own = self.client.get(reverse('ledger:account_ledger', args=[self.cash.id]))
        other = self.client.get(reverse('ledger:account_ledger', args=[foreign.id]))

        self.assertEqual(own.status_code, 200)
        self.assertEqual(other.status_code, 404)

    def test_backfill_view_runs_and_audits(self):
        self._income(account=self.other_income)

        response = self.client.post(reverse('ledger:backfill'))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['postings_succeeded'], 1)
        self.assertTrue(AuditLog.objects.filter(action='ledger_backfill', school=self.school).exists())
        self.assertEqual(JournalEntry.objects.get().posted_by, self.accountant)

    def test_backfill_view_requires_post(self):
        response = self.client.get(reverse('ledger:backfill'))

        self.assertEqual(response.status_code, 405)

    def test_non_finance_role_is_forbidden(self):
        teacher = get_user_model().objects.create_user(
            username='ledger_teacher',
            password='pass12345',
            role='teacher',
            school=self.school,
        )
        self.client.force_login(teacher)

        response = self.client.get(reverse('ledger:trial_balance'))

        self.assertEqual(response.status_code, 403)

    def test_anonymous_user_is_redirected_to_login(self):
        self.client.logout()

        response = self.client.get(reverse('ledger:trial_balance'))

        self.assertEqual(response.status_code, 302)


class RunLedgerBackfillCommandTests(LedgerTestCase):
    def test_command_prints_summary_and_errors(self):
        self._income(account=self.other_income)
        broken = self._income(account=None)
        out = StringIO()

        call_command('run_ledger_backfill', f'--school={self.school.code}', '--posted-by=ledger_accountant', stdout=out)

        output = out.getvalue()
        self.assertIn('Journal entries created: 1', output)
        self.assertIn(f'income {broken.id}:', output)
        self.assertEqual(JournalEntry.objects.get().posted_by, self.accountant)

    def test_all_schools_runs_each_tenant(self):
        other_school = School.objects.create(name='Second School', code='second_school')
        out = StringIO()

        call_command('run_ledger_backfill', '--all', stdout=out)

        output = out.getvalue()
        self.assertIn(f'[{self.school.code}]', output)
        self.assertIn(f'[{other_school.code}]', output)

    def test_unknown_school_is_an_error(self):
        with self.assertRaises(CommandError):
            call_command('run_ledger_backfill', '--school=missing', stdout=StringIO())

    def test_write_entry_is_usable_directly(self):
        draft = EntryDraft(
            date=date(2026, 1, 3),
            description='Bank transfer',
            source_type=JournalEntry.SOURCE_MANUAL,
            source_id='',
            lines=(DraftLine.dr(self.chart['1100'].id, '500'), DraftLine.cr(self.cash.id, '500')),
        )

        entry = write_entry(self.school, draft)

        self.assertEqual(entry.lines.count(), 2)


class GeneralLedgerTests(LedgerTestCase):
    def test_entries_are_listed_in_date_order_with_lines(self):
        post_event(self._expense(account=self.salaries, on=date(2026, 3, 1)))
        post_event(self._income(account=self.other_income, on=date(2026, 2, 1)))
        post_event(self._income(account=self.other_income, amount='5', on=date(2026, 4, 1)))

        ledger = general_ledger(self.school, date(2026, 1, 1), date(2026, 3, 31))

        self.assertEqual([entry.date for entry in ledger.entries], [date(2026, 2, 1), date(2026, 3, 1)])
        self.assertEqual([line.code for line in ledger.entries[0].lines], ['1000', '4100'])
        self.assertEqual(ledger.total_debits, Decimal('120000.00'))
        self.assertTrue(ledger.is_balanced)

    def test_source_type_filter(self):
        post_event(self._expense(account=self.salaries))
        post_event(self._income(account=self.other_income))

        ledger = general_ledger(self.school, date(2026, 1, 1), date(2026, 12, 31), JournalEntry.SOURCE_EXPENSE)

        self.assertEqual([entry.source_document_type for entry in ledger.entries], ['expense'])


class LedgerWriteViewTests(LedgerTestCase):
    def setUp(self):
        super().setUp()
        self.client.force_login(self.accountant)

    def _post_json(self, url, payload):
        return self.client.post(url, data=json.dumps(payload), content_type='application/json')

    def test_manual_entry_is_recorded_and_audited(self):
        response = self._post_json(reverse('ledger:manual_entry'), {
            'date': '2026-01-02',
            'description': 'Opening capital',
            'lines': [
                {'account_id': self.cash.id, 'debit': '250000'},
                {'account_id': self.capital.id, 'credit': '250000'},
            ],
        })

        self.assertEqual(response.status_code, 201)
        entry = JournalEntry.objects.get(pk=response.json()['entry_id'])
        self.assertEqual(entry.posted_by, self.accountant)
        self.assertEqual(entry.date, date(2026, 1, 2))
        self.assertTrue(AuditLog.objects.filter(action=AuditLog.ACTION_MANUAL_JOURNAL_ENTRY).exists())

    def test_unbalanced_manual_entry_is_rejected(self):
        response = self._post_json(reverse('ledger:manual_entry'), {
            'description': 'Typo',
            'lines': [
                {'account_id': self.cash.id, 'debit': '100'},
                {'account_id': self.capital.id, 'credit': '10'},
            ],
        })

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['missing_mapping'], 'balance')
        self.assertEqual(JournalEntry.objects.count(), 0)

    def test_manual_entry_accepts_account_ids_as_strings(self):
        response = self._post_json(reverse('ledger:manual_entry'), {
            'date': '2026-01-02',
            'description': 'Opening capital',
            'lines': [
                {'account_id': str(self.cash.id), 'debit': '250000'},
                {'account_id': f' {self.capital.id} ', 'credit': '250000'},
            ],
        })

        self.assertEqual(response.status_code, 201)
        entry = JournalEntry.objects.get(pk=response.json()['entry_id'])
        self.assertEqual(
            _lines(entry),
            [(self.cash.id, Decimal('250000.00'), None), (self.capital.id, None, Decimal('250000.00'))],
        )

    def test_manual_entry_rejects_non_numeric_account_id(self):
        response = self._post_json(reverse('ledger:manual_entry'), {
            'description': 'Opening capital',
            'lines': [
                {'account_id': 'cash', 'debit': '100'},
                {'account_id': self.capital.id, 'credit': '100'},
            ],
        })

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['missing_mapping'], 'account_id')
        self.assertIn("'cash'", response.json()['error'])
        self.assertEqual(JournalEntry.objects.count(), 0)

    def test_manual_entry_rejects_malformed_body(self):
        response = self.client.post(reverse('ledger:manual_entry'), data='not json', content_type='application/json')

        self.assertEqual(response.status_code, 400)

    def test_reverse_entry_view(self):
        result = post_event(self._income(account=self.other_income))
        url = reverse('ledger:reverse_entry', args=[result.entry_id])

        first = self._post_json(url, {'reason': 'Posted twice', 'date': '2026-02-03'})
        second = self._post_json(url, {})

        self.assertEqual(first.status_code, 201)
        self.assertEqual(first.json()['reverses'], result.entry_id)
        self.assertEqual(second.status_code, 400)
        self.assertEqual(AuditLog.objects.filter(action=AuditLog.ACTION_JOURNAL_REVERSAL).count(), 1)

    def test_general_ledger_view(self):
        post_event(self._income(account=self.other_income))

        response = self.client.get(reverse('ledger:general_ledger'), {'from': '2026-01-01', 'to': '2026-12-31'})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()['entries']), 1)

    def test_superadmin_picks_school_by_code(self):
        superadmin = get_user_model().objects.create_superuser('ledger_root', 'root@example.com', 'pass12345')
        post_event(self._income(account=self.other_income))
        self.client.force_login(superadmin)

        without_school = self.client.get(reverse('ledger:trial_balance'))
        with_school = self.client.get(reverse('ledger:trial_balance'), {'school': self.school.code, 'as_of': '2026-12-31'})

        self.assertEqual(without_school.status_code, 403)
        self.assertEqual(with_school.status_code, 200)
        self.assertEqual(with_school.json()['total_debits'], '100000.00')
