from django.contrib import admin

from .models import SchoolClass


@admin.register(SchoolClass)
class SchoolClassAdmin(admin.ModelAdmin):
    list_display = ('name', 'code', 'school', 'display_order', 'is_active')
    list_filter = ('school', 'is_active')
    search_fields = ('name', 'code')
