from django.contrib import admin

from .models import FeeTransaction, FeeType


@admin.register(FeeType)
class FeeTypeAdmin(admin.ModelAdmin):
    list_display = ('name', 'category', 'school', 'revenue_account', 'is_active')
    list_filter = ('school', 'category', 'is_active')
    search_fields = ('name',)


@admin.register(FeeTransaction)
class FeeTransactionAdmin(admin.ModelAdmin):
    list_display = (
        'transaction_date',
        'student',
        'transaction_type',
        'fee_type',
        'amount',
        'payment_method',
        'journal_entry',
    )
    list_filter = ('school', 'transaction_type', 'payment_method')
    search_fields = ('student__registration_number', 'student__first_name', 'reference_number')
    readonly_fields = ('journal_entry', 'created_at')

    def has_delete_permission(self, request, obj=None):
        return False
