from django.contrib import admin

from .models import Account, JournalEntry, JournalEntryLine, SchoolLedgerSettings


@admin.register(Account)
class AccountAdmin(admin.ModelAdmin):
    list_display = ('code', 'name', 'account_type', 'school', 'parent', 'is_active')
    list_filter = ('school', 'account_type', 'is_active')
    search_fields = ('code', 'name')


@admin.register(SchoolLedgerSettings)
class SchoolLedgerSettingsAdmin(admin.ModelAdmin):
    list_display = (
        'school',
        'default_cash_account',
        'default_accounts_receivable_account',
        'default_bursary_expense_account',
        'default_fee_revenue_account',
    )


class JournalEntryLineInline(admin.TabularInline):
    model = JournalEntryLine
    extra = 0
    can_delete = False
    readonly_fields = ('account', 'debit', 'credit', 'description')

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(JournalEntry)
class JournalEntryAdmin(admin.ModelAdmin):
    list_display = ('id', 'date', 'description', 'source_document_type', 'source_document_id', 'school')
    list_filter = ('school', 'source_document_type')
    search_fields = ('description', 'source_document_id')
    date_hierarchy = 'date'
    inlines = [JournalEntryLineInline]
    readonly_fields = (
        'school',
        'date',
        'description',
        'source_document_type',
        'source_document_id',
        'posted_by',
        'reverses',
        'created_at',
    )

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
