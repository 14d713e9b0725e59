from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as DjangoUserAdmin

from .models import AuditLog, User


@admin.register(User)
class UserAdmin(DjangoUserAdmin):
    list_display = ('username', 'get_full_name', 'role', 'school', 'is_active')
    list_filter = ('role', 'school', 'is_active')
    fieldsets = DjangoUserAdmin.fieldsets + (
        ('School access', {'fields': ('role', 'school')}),
    )
    add_fieldsets = DjangoUserAdmin.add_fieldsets + (
        ('School access', {'fields': ('role', 'school')}),
    )


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'action', 'user', 'school', 'target_model', 'target_id')
    list_filter = ('action', 'school')
    search_fields = ('details', 'target_id', 'user__username')
    date_hierarchy = 'created_at'

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
