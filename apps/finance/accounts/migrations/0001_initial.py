import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('schools', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Account',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('code', models.CharField(blank=True, max_length=20)),
                ('name', models.CharField(max_length=150)),
                ('account_type', models.CharField(choices=[('asset', 'Asset'), ('liability', 'Liability'), ('equity', 'Equity'), ('revenue', 'Revenue'), ('expense', 'Expense')], max_length=20)),
                ('description', models.TextField(blank=True)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('parent', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='children', to='finance_accounts.account')),
                ('school', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='accounts', to='schools.school')),
            ],
            options={
                'ordering': ['code', 'name', 'id'],
                'indexes': [models.Index(fields=['school', 'account_type'], name='account_school_type_idx')],
                'constraints': [
                    models.UniqueConstraint(
                        condition=models.Q(('code', ''), _negated=True),
                        fields=('school', 'code'),
                        name='unique_account_code_per_school',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='JournalEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('date', models.DateField(default=django.utils.timezone.localdate)),
                ('description', models.CharField(max_length=255)),
                ('source_document_type', models.CharField(choices=[('fee_payment', 'Fee Payment'), ('fee_billing', 'Fee Billing'), ('income', 'Income'), ('expense', 'Expense'), ('manual', 'Manual'), ('reversal', 'Reversal')], max_length=20)),
                ('source_document_id', models.CharField(blank=True, max_length=64)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('posted_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='journal_entries_posted', to=settings.AUTH_USER_MODEL)),
                ('reverses', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='reversal', to='finance_accounts.journalentry')),
                ('school', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='journal_entries', to='schools.school')),
            ],
            options={
                'verbose_name_plural': 'journal entries',
                'ordering': ['date', 'id'],
                'indexes': [
                    models.Index(fields=['school', 'date'], name='journal_entry_school_date_idx'),
                    models.Index(fields=['school', 'source_document_type', 'source_document_id'], name='journal_entry_source_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(
                        condition=models.Q(('source_document_type__in', ['fee_payment', 'fee_billing', 'income', 'expense'])),
                        fields=('school', 'source_document_type', 'source_document_id'),
                        name='unique_journal_entry_per_source_document',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='JournalEntryLine',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('debit', models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ('credit', models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ('description', models.CharField(blank=True, max_length=255)),
                ('account', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='journal_lines', to='finance_accounts.account')),
                ('entry', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='lines', to='finance_accounts.journalentry')),
            ],
            options={
                'ordering': ['id'],
                'indexes': [models.Index(fields=['account', 'entry'], name='journal_line_account_idx')],
                'constraints': [
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(('credit__isnull', True), ('debit__gt', 0)),
                            models.Q(('credit__gt', 0), ('debit__isnull', True)),
                            _connector='OR',
                        ),
                        name='journal_line_single_positive_side',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='SchoolLedgerSettings',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('default_accounts_receivable_account', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='finance_accounts.account')),
                ('default_bursary_expense_account', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='finance_accounts.account')),
                ('default_cash_account', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='finance_accounts.account')),
                ('default_fee_revenue_account', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='finance_accounts.account')),
                ('school', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='ledger_settings', to='schools.school')),
            ],
            options={
                'verbose_name_plural': 'school ledger settings',
            },
        ),
    ]
