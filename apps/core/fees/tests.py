from datetime import date
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.test import TestCase

from apps.core.academics.models import SchoolClass
from apps.core.schools.models import School
from apps.core.students.models import Student
from apps.finance.accounts.models import Account, JournalEntry
from apps.finance.accounts.registry import install_default_chart

from .models import FeeTransaction, FeeType
from .services import record_fee_billing, record_fee_payment, student_fee_balance


class FeesBaseTestCase(TestCase):
    def setUp(self):
        user_model = get_user_model()
        self.school = School.objects.create(name='Fee School', code='fee_school')
        self.accountant = user_model.objects.create_user(
            username='fee_accountant',
            password='pass12345',
            role='accountant',
            school=self.school,
        )
        self.accounts = install_default_chart(self.school)
        self.tuition = FeeType.objects.create(
            school=self.school,
            name='Tuition',
            revenue_account=self.accounts['4000'],
        )
        self.school_class = SchoolClass.objects.create(school=self.school, name='S.1')
        self.student = Student.objects.create(
            school=self.school,
            registration_number='FEE-001',
            first_name='Brian',
            last_name='Okello',
            current_class=self.school_class,
        )


class FeeTypeTests(FeesBaseTestCase):
    def test_revenue_account_must_be_revenue_type(self):
        fee_type = FeeType(school=self.school, name='Lunch', revenue_account=self.accounts['1000'])

        with self.assertRaises(ValidationError):
            fee_type.full_clean()

    def test_revenue_account_must_belong_to_school(self):
        other_school = School.objects.create(name='Other', code='other_fee_school')
        foreign = Account.objects.create(
            school=other_school,
            code='4000',
            name='Tuition',
            account_type=Account.TYPE_REVENUE,
        )
        fee_type = FeeType(school=self.school, name='Lunch', revenue_account=foreign)

        with self.assertRaises(ValidationError):
            fee_type.full_clean()

    def test_delete_deactivates(self):
        self.tuition.delete()

        self.tuition.refresh_from_db()
        self.assertFalse(self.tuition.is_active)


class FeeTransactionServiceTests(FeesBaseTestCase):
    def test_payment_is_posted_when_transaction_commits(self):
        with self.captureOnCommitCallbacks(execute=True):
            payment = record_fee_payment(
                student=self.student,
                fee_type=self.tuition,
                amount='45000',
                payment_method=FeeTransaction.METHOD_MOBILE_MONEY,
                transaction_date=date(2026, 2, 14),
                recorded_by=self.accountant,
            )

        payment.refresh_from_db()
        entry = payment.journal_entry
        self.assertEqual(entry.source_document_type, JournalEntry.SOURCE_FEE_PAYMENT)
        self.assertEqual(entry.totals(), (Decimal('45000.00'), Decimal('45000.00')))
        self.assertIn('Brian Okello (FEE-001)', entry.description)

    def test_billing_is_posted_to_receivable(self):
        with self.captureOnCommitCallbacks(execute=True):
            billing = record_fee_billing(
                student=self.student,
                fee_type=self.tuition,
                amount='200000',
                transaction_date=date(2026, 2, 1),
                recorded_by=self.accountant,
            )

        billing.refresh_from_db()
        debit_line = billing.journal_entry.lines.get(debit__isnull=False)
        self.assertEqual(debit_line.account, self.accounts['1200'])

    def test_billing_requires_fee_item(self):
        with self.assertRaises(ValidationError):
            record_fee_billing(student=self.student, fee_type=None, amount='1000')

    def test_payment_requires_method(self):
        with self.assertRaises(ValidationError):
            record_fee_payment(student=self.student, fee_type=self.tuition, amount='1000', payment_method='')

    def test_amount_must_be_positive(self):
        with self.assertRaises(ValidationError):
            record_fee_payment(
                student=self.student,
                fee_type=self.tuition,
                amount='0',
                payment_method=FeeTransaction.METHOD_CASH,
            )

    def test_fee_type_must_belong_to_same_school(self):
        other_school = School.objects.create(name='Other', code='other_fee_type_school')
        foreign_fee = FeeType.objects.create(school=other_school, name='Tuition')

        with self.assertRaises(ValidationError):
            record_fee_payment(
                student=self.student,
                fee_type=foreign_fee,
                amount='1000',
                payment_method=FeeTransaction.METHOD_CASH,
            )

    def test_balance_counts_bursaries_as_paid(self):
        record_fee_billing(student=self.student, fee_type=self.tuition, amount='200000')
        record_fee_payment(
            student=self.student,
            fee_type=self.tuition,
            amount='50000',
            payment_method=FeeTransaction.METHOD_CASH,
        )
        record_fee_payment(
            student=self.student,
            amount='100000.50',
            payment_method=FeeTransaction.METHOD_BURSARY,
        )

        self.assertEqual(student_fee_balance(self.student), Decimal('49999.50'))

    def test_ledger_event_snapshot(self):
        payment = record_fee_payment(
            student=self.student,
            fee_type=self.tuition,
            amount='1500',
            payment_method=FeeTransaction.METHOD_BURSARY,
            transaction_date=date(2026, 3, 1),
        )

        event = payment.to_ledger_event()

        self.assertEqual(event.source_type, JournalEntry.SOURCE_FEE_PAYMENT)
        self.assertEqual(event.source_id, str(payment.pk))
        self.assertEqual(event.payment_method, 'bursary')
        self.assertEqual(event.fee_type_id, self.tuition.id)
        self.assertEqual(event.fee_type_name, 'Tuition')
        self.assertEqual(event.date, date(2026, 3, 1))
