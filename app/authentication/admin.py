"""
Django admin for accounts and profiles.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from authentication.models import Profile, User


class ProfileInline(admin.StackedInline):
    model = Profile
    can_delete = False
    fields = ("first_name", "last_name", "profile_picture")


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Email-based user admin; names are edited through the profile inline."""

    list_display = ("email", "role", "is_active", "is_staff", "date_joined")
    list_filter = ("role", "is_active", "is_staff", "is_superuser")
    search_fields = ("email", "profile__first_name", "profile__last_name")
    ordering = ("-date_joined",)
    readonly_fields = ("id", "date_joined", "last_login")
    inlines = (ProfileInline,)

    fieldsets = (
        (None, {"fields": ("id", "email", "password", "role")}),
        ("Status", {"fields": ("is_active", "is_staff", "is_superuser")}),
        ("Permissions", {"fields": ("groups", "user_permissions")}),
        ("Important dates", {"fields": ("date_joined", "last_login")}),
    )
    add_fieldsets = (
        (
            None,
            {
                "classes": ("wide",),
                "fields": ("email", "role", "password1", "password2"),
            },
        ),
    )
