from django.contrib import admin
from .models import EngagementAction, ViewRecord


@admin.register(EngagementAction)
class EngagementActionAdmin(admin.ModelAdmin):
    list_display = ('id', 'actor', 'target', 'kind', 'created_at', 'updated_at')
    list_filter = ('kind', 'created_at')
    search_fields = ('actor__user__username', 'target__user__username')
    readonly_fields = ('id', 'created_at', 'updated_at')


@admin.register(ViewRecord)
class ViewRecordAdmin(admin.ModelAdmin):
    """View records are an audit trail: read-only in the admin."""
    list_display = ('id', 'viewer', 'viewed', 'created_at')
    list_filter = ('created_at',)
    search_fields = ('viewer__user__username', 'viewed__user__username')
    readonly_fields = ('id', 'viewer', 'viewed', 'created_at')

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
