import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('finance_accounts', '0001_initial'),
        ('schools', '0001_initial'),
        ('students', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='FeeType',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=120)),
                ('category', models.CharField(choices=[('academic', 'Academic'), ('boarding', 'Boarding'), ('transport', 'Transport'), ('other', 'Other')], default='academic', max_length=20)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('revenue_account', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='fee_types', to='finance_accounts.account')),
                ('school', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='fee_types', to='schools.school')),
            ],
            options={
                'ordering': ['name', 'id'],
                'indexes': [models.Index(fields=['school', 'category', 'is_active'], name='fee_type_school_category_idx')],
                'constraints': [
                    models.UniqueConstraint(fields=('school', 'name'), name='unique_fee_type_name_per_school'),
                ],
            },
        ),
        migrations.CreateModel(
            name='FeeTransaction',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('transaction_type', models.CharField(choices=[('debit', 'Billing'), ('credit', 'Payment')], max_length=10)),
                ('amount', models.DecimalField(decimal_places=2, max_digits=12)),
                ('transaction_date', models.DateField(default=django.utils.timezone.localdate)),
                ('payment_method', models.CharField(blank=True, choices=[('cash', 'Cash'), ('bank', 'Bank Deposit'), ('mobile_money', 'Mobile Money'), ('cheque', 'Cheque'), ('schoolpay', 'SchoolPay'), ('bursary', 'Bursary/Scholarship')], max_length=20)),
                ('reference_number', models.CharField(blank=True, max_length=100)),
                ('description', models.CharField(blank=True, max_length=255)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('fee_type', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='transactions', to='fees.feetype')),
                ('journal_entry', models.OneToOneField(blank=True, editable=False, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='fees_feetransaction', to='finance_accounts.journalentry')),
                ('recorded_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='fee_transactions_recorded', to=settings.AUTH_USER_MODEL)),
                ('school', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='fee_transactions', to='schools.school')),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='fee_transactions', to='students.student')),
            ],
            options={
                'ordering': ['-transaction_date', '-id'],
                'indexes': [
                    models.Index(fields=['school', 'transaction_date'], name='fee_txn_school_date_idx'),
                    models.Index(fields=['school', 'student', 'transaction_date'], name='fee_txn_student_date_idx'),
                ],
            },
        ),
    ]
