# ==========================================
# apps/accounts/admin.py
# ==========================================

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.html import format_html
from .models import User, UserRole


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Household members with role, lock state and permission bag."""

    list_display = [
        'email',
        'name',
        'role_badge',
        'locked_badge',
        'is_active',
        'created_at',
        'last_login',
    ]

    list_filter = [
        'role',
        'locked',
        'is_active',
        'password_reset_required',
        'created_at',
    ]

    search_fields = ['email', 'name']

    ordering = ['-created_at']
    date_hierarchy = 'created_at'

    fieldsets = (
        ('Basic Information', {
            'fields': ('email', 'name', 'password')
        }),
        ('Role & Capabilities', {
            'fields': ('role', 'permissions'),
        }),
        ('Account State', {
            'fields': ('locked', 'is_active', 'password_reset_required', 'is_staff', 'is_superuser'),
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at', 'last_login'),
            'classes': ('collapse',),
        }),
    )

    add_fieldsets = (
        ('Create User', {
            'classes': ('wide',),
            'fields': ('email', 'name', 'role', 'password1', 'password2'),
        }),
    )

    readonly_fields = ['created_at', 'updated_at', 'last_login']

    filter_horizontal = []

    def role_badge(self, obj):
        colour = '#A47449' if obj.role == UserRole.ADMIN else '#ccc'
        return format_html(
            '<span style="background: {}; padding: 3px 8px; '
            'border-radius: 10px; font-size: 11px;">{}</span>',
            colour,
            obj.get_role_display(),
        )
    role_badge.short_description = 'Role'
    role_badge.admin_order_field = 'role'

    def locked_badge(self, obj):
        if obj.locked:
            return format_html(
                '<span style="background: #B85C5C; color: white; padding: 3px 8px; '
                'border-radius: 10px; font-size: 11px;">Locked</span>'
            )
        return '-'
    locked_badge.short_description = 'Lock'
    locked_badge.admin_order_field = 'locked'

    actions = ['lock_users', 'unlock_users']

    @admin.action(description='Lock selected users')
    def lock_users(self, request, queryset):
        """Lock selected users (excludes admins)."""
        count = queryset.exclude(role=UserRole.ADMIN).update(locked=True)
        self.message_user(request, f'Locked {count} user(s).')

    @admin.action(description='Unlock selected users')
    def unlock_users(self, request, queryset):
        count = queryset.update(locked=False)
        self.message_user(request, f'Unlocked {count} user(s).')
