"""
Django admin configuration for users, facilities, bookings and ratings.

Capacity columns and booking statuses are read-only here: they are changed
only through the booking ledger so the capacity counter stays in step with
the bookings.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.translation import gettext_lazy as _

from .models import Booking, Facility, FacilityRating, User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """
    Custom admin interface for User model.

    Extends Django's UserAdmin with the marketplace role and phone number.
    """

    list_display = [
        'email',
        'username',
        'role',
        'is_staff',
        'is_active',
        'created_at',
    ]

    list_filter = [
        'role',
        'is_staff',
        'is_superuser',
        'is_active',
        'created_at',
    ]

    search_fields = [
        'email',
        'username',
        'first_name',
        'last_name',
        'phone_number',
    ]

    ordering = ['-created_at']

    fieldsets = (
        (None, {
            'fields': ('username', 'password')
        }),
        (_('Personal Info'), {
            'fields': (
                'first_name',
                'last_name',
                'email',
                'phone_number',
            )
        }),
        (_('Marketplace Role'), {
            'fields': ('role',)
        }),
        (_('Permissions'), {
            'fields': (
                'is_active',
                'is_staff',
                'is_superuser',
                'groups',
                'user_permissions',
            ),
            'classes': ('collapse',),
        }),
        (_('Important Dates'), {
            'fields': ('last_login', 'date_joined', 'created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': (
                'username',
                'email',
                'password1',
                'password2',
                'role',
            ),
        }),
    )

    readonly_fields = ['created_at', 'updated_at', 'last_login', 'date_joined']
    date_hierarchy = 'created_at'
    list_per_page = 25

    def get_readonly_fields(self, request, obj=None):
        if obj:  # Editing an existing object
            return self.readonly_fields
        return []


class BookingInline(admin.TabularInline):
    """Read-only list of a facility's bookings."""
    model = Booking
    extra = 0
    can_delete = False
    fields = ['user', 'crop', 'quantity', 'start_date', 'end_date', 'status', 'cost']
    readonly_fields = fields
    ordering = ['created_at', 'id']

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Facility)
class FacilityAdmin(admin.ModelAdmin):
    """Admin interface for Facility model."""

    list_display = [
        'name',
        'owner',
        'city',
        'state',
        'total_capacity',
        'available_capacity',
        'per_unit_per_day',
        'rating_average',
        'is_active',
        'created_at',
    ]

    list_filter = ['is_active', 'state', 'ventilation', 'monitoring', 'created_at']
    search_fields = ['name', 'city', 'state', 'pincode', 'owner__email']

    readonly_fields = [
        'total_capacity',
        'available_capacity',
        'rating_average',
        'rating_count',
        'version',
        'created_at',
        'updated_at',
    ]

    fieldsets = (
        ('Listing', {
            'fields': ('owner', 'name', 'description', 'images', 'is_active')
        }),
        ('Location', {
            'fields': ('address', 'city', 'state', 'pincode', 'latitude', 'longitude')
        }),
        ('Capacity & Conditions', {
            'fields': (
                'total_capacity',
                'available_capacity',
                'temperature',
                'humidity',
                'ventilation',
                'monitoring',
            )
        }),
        ('Pricing & Services', {
            'fields': ('base_rate', 'per_unit_per_day', 'minimum_period', 'services')
        }),
        ('Ratings', {
            'fields': ('rating_average', 'rating_count')
        }),
        ('Metadata', {
            'fields': ('version', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    inlines = [BookingInline]
    date_hierarchy = 'created_at'
    list_per_page = 25

    def get_readonly_fields(self, request, obj=None):
        # Initial capacity can be set when a facility is created from the admin
        if obj is None:
            return ['rating_average', 'rating_count', 'version', 'created_at', 'updated_at']
        return self.readonly_fields

    def save_model(self, request, obj, form, change):
        if not change:
            obj.available_capacity = obj.total_capacity
        super().save_model(request, obj, form, change)


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    """Admin interface for Booking model."""

    list_display = [
        'id',
        'facility',
        'user',
        'crop',
        'quantity',
        'status',
        'cost',
        'start_date',
        'end_date',
        'created_at',
    ]

    list_filter = ['status', 'created_at', 'start_date']
    search_fields = ['crop', 'facility__name', 'user__email']

    readonly_fields = [
        'facility',
        'user',
        'quantity',
        'status',
        'cost',
        'created_at',
        'updated_at',
    ]

    date_hierarchy = 'created_at'
    list_per_page = 25

    def has_add_permission(self, request):
        return False


@admin.register(FacilityRating)
class FacilityRatingAdmin(admin.ModelAdmin):
    """Admin interface for FacilityRating model."""

    list_display = ['facility', 'user', 'rating', 'created_at']
    list_filter = ['rating', 'created_at']
    search_fields = ['facility__name', 'user__email', 'comment']
    readonly_fields = ['created_at', 'updated_at']
    date_hierarchy = 'created_at'
