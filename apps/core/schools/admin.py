from django.contrib import admin

from apps.finance.accounts.models import SchoolLedgerSettings

from .models import School


class SchoolLedgerSettingsInline(admin.StackedInline):
    model = SchoolLedgerSettings
    can_delete = False
    extra = 0
    max_num = 1


@admin.register(School)
class SchoolAdmin(admin.ModelAdmin):
    list_display = ('name', 'code', 'is_active', 'created_at')
    list_filter = ('is_active',)
    search_fields = ('name', 'code', 'email')
    inlines = [SchoolLedgerSettingsInline]
