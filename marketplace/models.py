"""
Models for the agriculture marketplace cold-storage domain.
"""

from decimal import Decimal

from django.contrib.auth.models import AbstractUser
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

from .validators import validate_phone_number


class User(AbstractUser):
    """
    Custom User model extending Django's AbstractUser.

    Additional fields:
    - email: Required, unique email address (used to log in)
    - phone_number: Optional phone number with validation
    - role: Marketplace role (farmer, buyer, coldstorage, ...)
    - created_at: Account creation timestamp
    - updated_at: Last update timestamp
    """

    ROLE_CHOICES = [
        ('farmer', 'Farmer'),
        ('buyer', 'Buyer'),
        ('coldstorage', 'Cold Storage Owner'),
        ('transporter', 'Transporter'),
        ('fpo', 'Farmer Producer Organization'),
        ('admin', 'Administrator'),
    ]

    # Override email to make it required and unique
    email = models.EmailField(
        _('email address'),
        unique=True,
        blank=False,
        null=False,
        error_messages={
            'unique': _('A user with that email already exists.'),
        },
        help_text=_('Required. Enter a valid email address.')
    )

    phone_number = models.CharField(
        _('phone number'),
        max_length=20,
        blank=True,
        default='',
        validators=[validate_phone_number],
        help_text=_('Optional. Indian mobile number, with or without +91.')
    )

    role = models.CharField(
        _('role'),
        max_length=20,
        choices=ROLE_CHOICES,
        default='farmer',
        help_text=_('Marketplace role of the user.')
    )

    created_at = models.DateTimeField(
        _('created at'),
        auto_now_add=True,
        help_text=_('Timestamp when the account was created.')
    )

    updated_at = models.DateTimeField(
        _('updated at'),
        auto_now=True,
        help_text=_('Timestamp when the account was last updated.')
    )

    class Meta:
        verbose_name = _('user')
        verbose_name_plural = _('users')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['email'], name='marketplace_email_7d1a4f_idx'),
            models.Index(fields=['role'], name='marketplace_role_3c9e0b_idx'),
        ]

    def __str__(self):
        """Return email as string representation."""
        return self.email or self.username

    def is_coldstorage_owner(self):
        """
        Check if user operates cold-storage facilities.

        Returns:
            bool: True if role is 'coldstorage', False otherwise
        """
        return self.role == 'coldstorage'

    def save(self, *args, **kwargs):
        # Normalize email to lowercase for case-insensitive uniqueness
        if self.email:
            self.email = self.email.lower()
        super().save(*args, **kwargs)


class Facility(models.Model):
    """
    A cold-storage site offering capacity for rent.

    The facility is the consistency boundary for its bookings: the capacity
    counter and the booking rows are only ever changed together by the
    booking ledger, which bumps ``version`` on every write.

    Fields:
    - owner: Foreign key to User (cold-storage operator)
    - name / description: Listing text
    - address, city, state, pincode, latitude, longitude: Location
    - total_capacity: Capacity offered, in units (tons)
    - available_capacity: Capacity not held by pending/confirmed/active bookings
    - temperature, humidity, ventilation, monitoring: Storage conditions
    - services: Extra services offered, list of {name, description, price, unit}
    - base_rate, per_unit_per_day, minimum_period: Pricing
    - rating_average, rating_count: Rating aggregate
    - images: List of image URLs
    - is_active: False once the facility is withdrawn
    - version: Optimistic concurrency counter
    """

    owner = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='facilities',
        help_text=_('Cold-storage operator owning this facility')
    )

    name = models.CharField(
        _('name'),
        max_length=200,
        help_text=_('Name of the facility')
    )

    description = models.TextField(
        _('description'),
        blank=True,
        default=''
    )

    address = models.CharField(_('address'), max_length=300, blank=True, default='')
    city = models.CharField(_('city'), max_length=100, blank=True, default='')
    state = models.CharField(_('state'), max_length=100, blank=True, default='')
    pincode = models.CharField(_('pincode'), max_length=10, blank=True, default='')
    latitude = models.FloatField(_('latitude'), null=True, blank=True)
    longitude = models.FloatField(_('longitude'), null=True, blank=True)

    total_capacity = models.PositiveIntegerField(
        _('total capacity'),
        help_text=_('Total storage capacity in tons')
    )

    available_capacity = models.PositiveIntegerField(
        _('available capacity'),
        help_text=_('Capacity not reserved by open bookings')
    )

    temperature = models.FloatField(
        _('temperature'),
        null=True,
        blank=True,
        help_text=_('Storage temperature in degrees Celsius')
    )
    humidity = models.FloatField(
        _('humidity'),
        null=True,
        blank=True,
        help_text=_('Relative humidity in percent')
    )
    ventilation = models.BooleanField(_('ventilation'), default=False)
    monitoring = models.BooleanField(_('monitoring'), default=False)

    services = models.JSONField(
        _('services'),
        default=list,
        blank=True,
        help_text=_('Additional services: list of {name, description, price, unit}')
    )

    base_rate = models.DecimalField(
        _('base rate'),
        max_digits=10,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))]
    )

    per_unit_per_day = models.DecimalField(
        _('rate per unit per day'),
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))],
        help_text=_('Price charged per ton per day')
    )

    minimum_period = models.PositiveIntegerField(
        _('minimum period'),
        default=1,
        help_text=_('Advertised minimum storage period in days')
    )

    rating_average = models.DecimalField(
        _('rating average'),
        max_digits=3,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[
            MinValueValidator(Decimal('0.00'), message=_('Rating cannot be negative.')),
            MaxValueValidator(Decimal('5.00'), message=_('Rating cannot exceed 5.00.'))
        ]
    )

    rating_count = models.PositiveIntegerField(_('rating count'), default=0)

    images = models.JSONField(_('images'), default=list, blank=True)

    is_active = models.BooleanField(
        _('is active'),
        default=True,
        help_text=_('Inactive facilities are hidden and cannot be booked')
    )

    version = models.PositiveIntegerField(
        _('version'),
        default=0,
        editable=False,
        help_text=_('Incremented on every capacity or booking change')
    )

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('facility')
        verbose_name_plural = _('facilities')
        ordering = ['-rating_average', '-created_at']
        indexes = [
            models.Index(fields=['owner'], name='marketplace_owner_i_5b2e81_idx'),
            models.Index(fields=['is_active'], name='marketplace_is_acti_0f6c2d_idx'),
            models.Index(fields=['city'], name='marketplace_city_8a41c7_idx'),
            models.Index(fields=['state'], name='marketplace_state_e29b53_idx'),
            models.Index(fields=['rating_average'], name='marketplace_rating__4d7f90_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(available_capacity__gte=0),
                name='facility_available_non_negative',
            ),
            models.CheckConstraint(
                condition=models.Q(available_capacity__lte=models.F('total_capacity')),
                name='facility_available_lte_total',
            ),
        ]

    def __str__(self):
        return self.name

    def clean(self):
        """
        Validate model fields.

        Ensures:
        - Name is not empty
        - Available capacity lies between 0 and total capacity

        Raises:
            ValidationError: If validation fails
        """
        super().clean()

        if not self.name or not self.name.strip():
            raise ValidationError({
                'name': _('Name cannot be empty.')
            })

        if self.total_capacity is not None and self.available_capacity is not None:
            if self.available_capacity > self.total_capacity:
                raise ValidationError({
                    'available_capacity': _('Available capacity cannot exceed total capacity.')
                })

    def save(self, *args, **kwargs):
        # Run full_clean for validation
        self.full_clean()
        super().save(*args, **kwargs)

    def location_summary(self):
        return {
            'address': self.address,
            'city': self.city,
            'state': self.state,
            'pincode': self.pincode,
        }


class Booking(models.Model):
    """
    Reservation of facility capacity by a user for a date range.

    Bookings are owned by their facility and are created and transitioned
    only through the booking ledger.

    Fields:
    - facility: Foreign key to Facility (owning aggregate)
    - user: Foreign key to User making the booking
    - crop: Crop being stored
    - quantity: Reserved capacity in tons, fixed at creation
    - start_date / end_date: Storage period
    - status: pending, confirmed, active, completed, cancelled
    - cost: ceil(days) x quantity x facility rate, computed at creation
    - special_instructions: Free text from the requester
    """

    STATUS_PENDING = 'pending'
    STATUS_CONFIRMED = 'confirmed'
    STATUS_ACTIVE = 'active'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_CONFIRMED, 'Confirmed'),
        (STATUS_ACTIVE, 'Active'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    # Statuses that hold capacity
    OPEN_STATUSES = (STATUS_PENDING, STATUS_CONFIRMED, STATUS_ACTIVE)
    TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_CANCELLED)

    facility = models.ForeignKey(
        Facility,
        on_delete=models.CASCADE,
        related_name='bookings',
        help_text=_('Facility holding the reserved capacity')
    )

    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='storage_bookings',
        help_text=_('User who made the booking')
    )

    crop = models.CharField(_('crop'), max_length=100)

    quantity = models.PositiveIntegerField(
        _('quantity'),
        help_text=_('Reserved capacity in tons')
    )

    start_date = models.DateTimeField(_('start date'))
    end_date = models.DateTimeField(_('end date'))

    status = models.CharField(
        _('status'),
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_PENDING
    )

    cost = models.DecimalField(
        _('cost'),
        max_digits=14,
        decimal_places=2,
        help_text=_('Total storage cost for the booked period')
    )

    special_instructions = models.TextField(
        _('special instructions'),
        blank=True,
        default=''
    )

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('booking')
        verbose_name_plural = _('bookings')
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['facility', 'status'], name='marketplace_facilit_9c3a12_idx'),
            models.Index(fields=['user'], name='marketplace_user_id_61e0fb_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gt=0),
                name='booking_quantity_positive',
            ),
            models.CheckConstraint(
                condition=models.Q(end_date__gt=models.F('start_date')),
                name='booking_end_after_start',
            ),
        ]

    def __str__(self):
        return f"Booking {self.pk} - {self.crop} x{self.quantity} at {self.facility_id}"

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    def clean(self):
        super().clean()

        if self.quantity is not None and self.quantity <= 0:
            raise ValidationError({
                'quantity': _('Quantity must be greater than 0.')
            })

        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValidationError({
                'end_date': _('End date must be after start date.')
            })

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)


class FacilityRating(models.Model):
    """
    Star rating left by a user on a facility after a completed booking.

    Saving or deleting a rating refreshes the facility's rating aggregate
    (see signals.py).
    """

    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='facility_ratings'
    )

    facility = models.ForeignKey(
        Facility,
        on_delete=models.CASCADE,
        related_name='ratings'
    )

    rating = models.PositiveSmallIntegerField(
        _('rating'),
        validators=[
            MinValueValidator(1, message=_('Rating must be at least 1.')),
            MaxValueValidator(5, message=_('Rating must be at most 5.'))
        ],
        help_text=_('Rating from 1 to 5 stars')
    )

    comment = models.TextField(_('comment'), blank=True, default='')

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('facility rating')
        verbose_name_plural = _('facility ratings')
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['user', 'facility'],
                name='one_rating_per_user_facility',
            ),
        ]

    def __str__(self):
        return f"{self.rating}★ for {self.facility_id} by {self.user_id}"

    def clean(self):
        """
        Ensure the rater has a completed booking at the facility.

        Raises:
            ValidationError: If the user never completed a booking there
        """
        super().clean()

        if self.user_id and self.facility_id:
            has_completed = Booking.objects.filter(
                facility_id=self.facility_id,
                user_id=self.user_id,
                status=Booking.STATUS_COMPLETED,
            ).exists()
            if not has_completed:
                raise ValidationError({
                    'facility': _('Only users with a completed booking can rate this facility.')
                })

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)
