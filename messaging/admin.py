"""
Django admin registrations.

Both message tables and both notification stores are browsable so staff
can inspect delivery and read state during support.
"""

from django.contrib import admin

from .models import (
    AuditEvent,
    PatientMessage,
    PatientNotification,
    StaffMessage,
    StaffNotification,
    User,
)


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'role', 'first_name', 'last_name', 'is_active')
    list_filter = ('role', 'is_active')
    search_fields = ('username', 'first_name', 'last_name', 'email')


class MessageAdmin(admin.ModelAdmin):
    list_display = ('id', 'sender', 'receiver', 'created_at', 'is_read')
    list_filter = ('is_read',)
    search_fields = ('sender__username', 'receiver__username', 'content', 'client_token')
    raw_id_fields = ('sender', 'receiver')


admin.site.register(StaffMessage, MessageAdmin)
admin.site.register(PatientMessage, MessageAdmin)


class NotificationAdmin(admin.ModelAdmin):
    list_display = ('id', 'recipient', 'type', 'title', 'is_read', 'created_at')
    list_filter = ('type', 'is_read')
    search_fields = ('recipient__username', 'title')
    raw_id_fields = ('recipient',)


admin.site.register(StaffNotification, NotificationAdmin)
admin.site.register(PatientNotification, NotificationAdmin)


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('action', 'user', 'object_type', 'object_id', 'created_at')
    list_filter = ('action',)
    search_fields = ('user__username', 'object_type')
