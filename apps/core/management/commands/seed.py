import random
from datetime import timedelta
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone
from faker import Faker

from apps.core.academics.models import SchoolClass
from apps.core.fees.models import FeeTransaction, FeeType
from apps.core.fees.services import record_fee_billing, record_fee_payment
from apps.core.schools.models import School
from apps.core.students.models import Student, demo_class_name
from apps.core.users.models import User
from apps.finance.accounts.posting import auto_posting_suspended
from apps.finance.accounts.registry import install_default_chart
from apps.finance.cashbook.services import record_expense, record_income


PAYMENT_METHODS = [
    FeeTransaction.METHOD_CASH,
    FeeTransaction.METHOD_BANK,
    FeeTransaction.METHOD_MOBILE_MONEY,
    FeeTransaction.METHOD_SCHOOLPAY,
    FeeTransaction.METHOD_BURSARY,
]


class Command(BaseCommand):
    help = 'Seeds a school with a chart of accounts and unposted fee, income and expense history.'

    def add_arguments(self, parser):
        parser.add_argument('--students', type=int, default=20, help='Students per class.')
        parser.add_argument('--days', type=int, default=120, help='How far back the history goes.')
        parser.add_argument('--seed', type=int, default=None, help='Random seed for repeatable data.')

    @transaction.atomic
    def handle(self, *args, **options):
        self.stdout.write('Seeding database...')

        fake = Faker()
        if options['seed'] is not None:
            Faker.seed(options['seed'])
            random.seed(options['seed'])

        school, created = School.objects.get_or_create(
            name=fake.company() + ' School',
            defaults={
                'address': fake.address(),
                'phone': fake.phone_number()[:20],
                'email': fake.email(),
            },
        )
        if created:
            self.stdout.write(self.style.SUCCESS(f'Successfully created school: {school.name}'))

        if not User.objects.filter(username='superadmin').exists():
            User.objects.create_superuser('superadmin', 'superadmin@example.com', 'password')
            self.stdout.write(self.style.SUCCESS('Successfully created superadmin user.'))

        accountant, created = User.objects.get_or_create(
            username=f'accountant_{school.code}'[:150],
            defaults={
                'role': User.ROLE_ACCOUNTANT,
                'school': school,
            },
        )
        if created:
            accountant.set_password('password')
            accountant.save()
            self.stdout.write(self.style.SUCCESS(f'Successfully created accountant user: {accountant.username}'))

        accounts = install_default_chart(school)
        other_income = accounts['4100']
        expense_accounts = [accounts['5000'], accounts['5200']]

        tuition, _ = FeeType.objects.get_or_create(
            school=school,
            name='Tuition',
            defaults={'revenue_account': accounts['4000']},
        )
        boarding, _ = FeeType.objects.get_or_create(
            school=school,
            name='Boarding',
            defaults={'category': FeeType.CATEGORY_BOARDING},
        )

        classes = []
        for order, name in enumerate(['P.1', 'P.2', 'P.3', 'P.4'], start=1):
            school_class, _ = SchoolClass.objects.get_or_create(
                school=school,
                name=name,
                defaults={'display_order': order},
            )
            classes.append(school_class)
        demo_class, _ = SchoolClass.objects.get_or_create(
            school=school,
            name=demo_class_name(),
            defaults={'display_order': 99},
        )

        today = timezone.localdate()
        with auto_posting_suspended():
            for school_class in classes + [demo_class]:
                count = options['students'] if school_class is not demo_class else 3
                for _ in range(count):
                    student = Student.objects.create(
                        school=school,
                        registration_number=str(fake.unique.random_number(digits=7, fix_len=True)),
                        first_name=fake.first_name(),
                        last_name=fake.last_name(),
                        current_class=school_class,
                    )
                    self._seed_fees(student, tuition, boarding, today, options['days'], accountant)

            for _ in range(10):
                record_income(
                    school=school,
                    amount=Decimal(random.randrange(5000, 50000)),
                    description=fake.sentence(nb_words=4),
                    source=fake.company(),
                    account=other_income,
                    date=today - timedelta(days=random.randrange(options['days'])),
                    recorded_by=accountant,
                )
            for _ in range(15):
                record_expense(
                    school=school,
                    amount=Decimal(random.randrange(2000, 80000)),
                    description=fake.sentence(nb_words=4),
                    payee=fake.company(),
                    category=random.choice(['Salaries', 'Utilities']),
                    account=random.choice(expense_accounts),
                    date=today - timedelta(days=random.randrange(options['days'])),
                    recorded_by=accountant,
                )

        self.stdout.write(self.style.SUCCESS(
            f'Database seeding complete! Run `manage.py run_ledger_backfill --school {school.code}` to post history.'
        ))

    def _seed_fees(self, student, tuition, boarding, today, days, accountant):
        billed_on = today - timedelta(days=days)
        tuition_amount = Decimal(random.choice([150000, 200000, 250000]))
        record_fee_billing(
            student=student,
            fee_type=tuition,
            amount=tuition_amount,
            transaction_date=billed_on,
            recorded_by=accountant,
        )
        if random.random() < 0.3:
            # Boarding has no revenue account so its billings surface as configuration errors.
            record_fee_billing(
                student=student,
                fee_type=boarding,
                amount=Decimal('80000'),
                transaction_date=billed_on,
                recorded_by=accountant,
            )

        for _ in range(random.randint(0, 3)):
            record_fee_payment(
                student=student,
                fee_type=tuition,
                amount=Decimal(random.randrange(10000, 60000)),
                payment_method=random.choice(PAYMENT_METHODS),
                transaction_date=billed_on + timedelta(days=random.randrange(1, days)),
                recorded_by=accountant,
            )
