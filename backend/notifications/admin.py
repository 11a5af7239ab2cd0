from django.contrib import admin
from .models import Notification, DeviceRegistration


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    """Admin interface for Notification model"""
    list_display = (
        'id',
        'recipient',
        'sender',
        'kind',
        'title',
        'is_read',
        'created_at',
    )
    list_filter = ('kind', 'is_read', 'created_at')
    search_fields = ('title', 'body', 'recipient__user__username', 'sender__user__username')
    readonly_fields = ('id', 'related_id', 'created_at', 'updated_at')
    fieldsets = (
        ('Basic Info', {
            'fields': ('id', 'recipient', 'sender', 'kind')
        }),
        ('Content', {
            'fields': ('title', 'body', 'related_id')
        }),
        ('Status', {
            'fields': ('is_read',)
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def get_readonly_fields(self, request, obj=None):
        if obj:  # Editing an existing object
            return self.readonly_fields + ('recipient', 'sender', 'kind', 'title', 'body')
        return self.readonly_fields


@admin.register(DeviceRegistration)
class DeviceRegistrationAdmin(admin.ModelAdmin):
    """Admin interface for DeviceRegistration model"""
    list_display = (
        'id',
        'member',
        'platform',
        'device_label',
        'is_active',
        'updated_at',
    )
    list_filter = ('platform', 'is_active', 'updated_at')
    search_fields = ('member__user__username', 'push_token', 'device_label')
    readonly_fields = ('id', 'push_token', 'last_known_ip', 'created_at', 'updated_at')
    fieldsets = (
        ('Device Info', {
            'fields': ('id', 'member', 'platform', 'push_token', 'device_label', 'last_known_ip')
        }),
        ('Status', {
            'fields': ('is_active',)
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def get_readonly_fields(self, request, obj=None):
        if obj:  # Editing an existing object
            return self.readonly_fields + ('member', 'platform')
        return self.readonly_fields
