from django.contrib import admin

from .models import SchoolExpense, SchoolIncome


class CashbookRecordAdmin(admin.ModelAdmin):
    list_filter = ('school',)
    search_fields = ('description', 'reference_number')
    readonly_fields = ('journal_entry', 'created_at')

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(SchoolIncome)
class SchoolIncomeAdmin(CashbookRecordAdmin):
    list_display = ('date', 'description', 'source', 'amount', 'account', 'journal_entry')


@admin.register(SchoolExpense)
class SchoolExpenseAdmin(CashbookRecordAdmin):
    list_display = ('date', 'description', 'category', 'amount', 'account', 'journal_entry')
