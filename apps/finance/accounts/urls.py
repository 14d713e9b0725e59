from django.urls import path

from . import views

app_name = 'ledger'

urlpatterns = [
    path('trial-balance/', views.trial_balance_view, name='trial_balance'),
    path('income-statement/', views.income_statement_view, name='income_statement'),
    path('balance-sheet/', views.balance_sheet_view, name='balance_sheet'),
    path('cash-flow/', views.cash_flow_statement_view, name='cash_flow_statement'),
    path('general-ledger/', views.general_ledger_view, name='general_ledger'),
    path('accounts/<int:account_id>/ledger/', views.account_ledger_view, name='account_ledger'),
    path('entries/', views.manual_entry_view, name='manual_entry'),
    path('entries/<int:entry_id>/reverse/', views.reverse_entry_view, name='reverse_entry'),
    path('backfill/', views.backfill_view, name='backfill'),
]
