from django.contrib import admin
from .models import Member


@admin.register(Member)
class MemberAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'gender', 'is_active', 'is_verified', 'view_tokens', 'premium_until')
    list_filter = ('is_active', 'is_verified', 'gender')
    search_fields = ('user__username', 'user__first_name', 'user__last_name')
    # Balance changes go through the ledger so they stay atomic
    readonly_fields = ('id', 'view_tokens', 'created_at', 'updated_at')
