from django.apps import AppConfig


class AccountsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.finance.accounts'
    label = 'finance_accounts'
    verbose_name = 'Ledger'
