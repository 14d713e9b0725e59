from io import StringIO

from django.core.management import call_command
from django.test import TestCase

from apps.core.fees.models import FeeTransaction
from apps.core.schools.models import School
from apps.finance.accounts.backfill import run_backfill
from apps.finance.accounts.models import JournalEntry
from apps.finance.cashbook.models import SchoolExpense, SchoolIncome


class SeedCommandTests(TestCase):
    def test_seed_leaves_history_unposted_for_backfill(self):
        out = StringIO()

        call_command('seed', '--students=2', '--days=30', '--seed=7', stdout=out)

        school = School.objects.get()
        self.assertIn('Database seeding complete', out.getvalue())
        self.assertTrue(FeeTransaction.objects.for_school(school).exists())
        self.assertEqual(SchoolIncome.objects.for_school(school).count(), 10)
        self.assertEqual(SchoolExpense.objects.for_school(school).count(), 15)
        self.assertEqual(JournalEntry.objects.count(), 0)

        report = run_backfill(school)

        self.assertEqual(report.students_deactivated, 3)
        self.assertGreater(report.postings_succeeded, 0)
        for error in report.errors:
            self.assertIn('Boarding', error)
