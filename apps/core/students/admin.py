from django.contrib import admin

from .models import Student


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = ('registration_number', 'first_name', 'last_name', 'school', 'current_class', 'status')
    list_filter = ('school', 'status', 'current_class')
    search_fields = ('registration_number', 'first_name', 'last_name')
