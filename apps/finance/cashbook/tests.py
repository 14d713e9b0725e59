from datetime import date
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.test import TestCase

from apps.core.schools.models import School
from apps.finance.accounts.models import JournalEntry
from apps.finance.accounts.registry import install_default_chart

from .models import SchoolExpense, SchoolIncome
from .services import record_expense, record_income


class CashbookTests(TestCase):
    def setUp(self):
        self.school = School.objects.create(name='Cashbook School', code='cashbook_school')
        self.accountant = get_user_model().objects.create_user(
            username='cashbook_accountant',
            password='pass12345',
            role='accountant',
            school=self.school,
        )
        self.accounts = install_default_chart(self.school)

    def test_income_requires_revenue_account(self):
        with self.assertRaises(ValidationError):
            record_income(
                school=self.school,
                amount='1000',
                description='Hall hire',
                account=self.accounts['5000'],
            )

    def test_expense_requires_expense_account(self):
        with self.assertRaises(ValidationError):
            record_expense(
                school=self.school,
                amount='1000',
                description='Generator fuel',
                account=self.accounts['4100'],
            )

    def test_amount_must_be_positive(self):
        with self.assertRaises(ValidationError):
            record_expense(
                school=self.school,
                amount='-10',
                description='Generator fuel',
                account=self.accounts['5200'],
            )

    def test_expense_posts_debit_expense_credit_cash(self):
        with self.captureOnCommitCallbacks(execute=True):
            expense = record_expense(
                school=self.school,
                amount='20000',
                description='Power bill',
                payee='Umeme',
                category='Utilities',
                account=self.accounts['5200'],
                date=date(2026, 3, 2),
                recorded_by=self.accountant,
            )

        expense.refresh_from_db()
        lines = list(expense.journal_entry.lines.values_list('account_id', 'debit', 'credit'))
        self.assertEqual(
            lines,
            [
                (self.accounts['5200'].id, Decimal('20000.00'), None),
                (self.accounts['1000'].id, None, Decimal('20000.00')),
            ],
        )
        self.assertEqual(expense.journal_entry.posted_by, self.accountant)

    def test_income_without_account_is_kept_unposted(self):
        with self.captureOnCommitCallbacks(execute=True):
            income = record_income(school=self.school, amount='5000', description='Donation')

        income.refresh_from_db()
        self.assertFalse(income.is_posted)
        self.assertEqual(SchoolIncome.objects.unposted().count(), 1)
        self.assertEqual(JournalEntry.objects.count(), 0)

    def test_ledger_event_carries_counterparty(self):
        expense = record_expense(
            school=self.school,
            amount='700',
            description='Chalk',
            category='Supplies',
            account=self.accounts['5200'],
        )

        event = expense.to_ledger_event()

        self.assertEqual(event.source_type, JournalEntry.SOURCE_EXPENSE)
        self.assertEqual(event.account_id, self.accounts['5200'].id)
        self.assertEqual(event.party_label, 'Supplies')

    def test_records_cannot_be_deleted(self):
        expense = record_expense(
            school=self.school,
            amount='700',
            description='Chalk',
            account=self.accounts['5200'],
        )

        with self.assertRaises(ValidationError):
            expense.delete()
        self.assertTrue(SchoolExpense.objects.filter(pk=expense.pk).exists())
