"""
Serializers for authentication and the cold-storage API.

The JSON surface uses camelCase keys with nested ``location``, ``facilities``,
``pricing`` and ``ratings`` objects; nested serializers declared with
``source='*'`` map them onto the flat model columns.
"""

from decimal import Decimal

from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer
from django.contrib.auth import get_user_model

from .models import Booking, Facility, FacilityRating

User = get_user_model()


class EmailTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    Custom serializer to use email instead of username for authentication.
    """
    username_field = 'email'

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        # Remove username field and ensure email field exists
        if 'username' in self.fields:
            del self.fields['username']
        if 'email' not in self.fields:
            self.fields['email'] = serializers.EmailField()


# ============================================================================
# User Serializers
# ============================================================================

class OwnerSerializer(serializers.ModelSerializer):
    """
    Nested serializer for the facility owner.

    Fields:
    - id: User ID
    - name: Full name, falls back to email
    - email: Contact email
    - phone: Contact phone number
    """

    name = serializers.SerializerMethodField()
    phone = serializers.CharField(source='phone_number', read_only=True)

    class Meta:
        model = User
        fields = ['id', 'name', 'email', 'phone']
        read_only_fields = fields

    def get_name(self, obj):
        return obj.get_full_name() or obj.email


class BookingUserSerializer(serializers.ModelSerializer):
    """Minimal identity of the user behind a booking."""

    name = serializers.SerializerMethodField()
    phone = serializers.CharField(source='phone_number', read_only=True)

    class Meta:
        model = User
        fields = ['id', 'name', 'phone']
        read_only_fields = fields

    def get_name(self, obj):
        return obj.get_full_name() or obj.email


# ============================================================================
# Facility Serializers
# ============================================================================

class CoordinatesSerializer(serializers.Serializer):
    lat = serializers.FloatField(source='latitude', required=False, allow_null=True)
    lng = serializers.FloatField(source='longitude', required=False, allow_null=True)


class LocationSerializer(serializers.Serializer):
    address = serializers.CharField(required=False, allow_blank=True, max_length=300)
    city = serializers.CharField(required=False, allow_blank=True, max_length=100)
    state = serializers.CharField(required=False, allow_blank=True, max_length=100)
    pincode = serializers.CharField(required=False, allow_blank=True, max_length=10)
    coordinates = CoordinatesSerializer(source='*', required=False)


class StorageConditionsSerializer(serializers.Serializer):
    """Capacity and storage conditions; availableCapacity is ledger-owned."""

    totalCapacity = serializers.IntegerField(source='total_capacity', min_value=0)
    availableCapacity = serializers.IntegerField(source='available_capacity', read_only=True)
    temperature = serializers.FloatField(required=False, allow_null=True)
    humidity = serializers.FloatField(required=False, allow_null=True, min_value=0, max_value=100)
    ventilation = serializers.BooleanField(required=False)
    monitoring = serializers.BooleanField(required=False)


class PricingSerializer(serializers.Serializer):
    baseRate = serializers.DecimalField(
        source='base_rate', max_digits=10, decimal_places=2,
        min_value=Decimal('0.00'), required=False
    )
    perUnitPerDay = serializers.DecimalField(
        source='per_unit_per_day', max_digits=10, decimal_places=2,
        min_value=Decimal('0.00')
    )
    minimumPeriod = serializers.IntegerField(source='minimum_period', min_value=1, required=False)


class RatingSummarySerializer(serializers.Serializer):
    average = serializers.DecimalField(
        source='rating_average', max_digits=3, decimal_places=2, read_only=True
    )
    count = serializers.IntegerField(source='rating_count', read_only=True)


class FacilityServiceSerializer(serializers.Serializer):
    """One extra service a facility offers (sorting, grading, packing, ...)."""

    name = serializers.CharField(max_length=100)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    price = serializers.FloatField(min_value=0)
    unit = serializers.CharField(required=False, allow_blank=True, default='')


class FacilitySerializer(serializers.ModelSerializer):
    """
    Facility representation used for listing, creation and owner edits.

    Security features:
    - owner is always the authenticated user on create
    - availableCapacity, ratings, isActive are read-only; capacity changes
      go through the booking ledger (see views)

    Request body (create):
    {
        "name": "Nashik Cold Chain",
        "location": {"city": "Nashik", "state": "Maharashtra"},
        "facilities": {"totalCapacity": 500, "temperature": 4},
        "pricing": {"baseRate": "100.00", "perUnitPerDay": "2.50", "minimumPeriod": 7}
    }
    """

    owner = OwnerSerializer(read_only=True)
    location = LocationSerializer(source='*', required=False)
    facilities = StorageConditionsSerializer(source='*')
    pricing = PricingSerializer(source='*')
    services = FacilityServiceSerializer(many=True, required=False)
    ratings = RatingSummarySerializer(source='*', read_only=True)
    images = serializers.ListField(child=serializers.URLField(), required=False)
    isActive = serializers.BooleanField(source='is_active', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = Facility
        fields = [
            'id',
            'owner',
            'name',
            'description',
            'location',
            'facilities',
            'pricing',
            'services',
            'ratings',
            'images',
            'isActive',
            'createdAt',
            'updatedAt',
        ]
        read_only_fields = ['id']

    def validate_name(self, value):
        if not value or not value.strip():
            raise serializers.ValidationError("Name cannot be empty.")
        return value.strip()

    def create(self, validated_data):
        """
        Create a facility owned by the requesting user.

        A new facility has no bookings, so all of its capacity is available.
        """
        request = self.context.get('request')
        if not request or not request.user:
            raise serializers.ValidationError(
                "Authentication required to create a facility."
            )

        validated_data['owner'] = request.user
        validated_data['available_capacity'] = validated_data['total_capacity']
        return Facility.objects.create(**validated_data)

    def update(self, instance, validated_data):
        """
        Apply listing edits without touching ledger-owned columns.

        ``total_capacity`` is resized by the view through the ledger before
        this runs, so it is dropped here; only the edited columns are
        written so a concurrent booking's capacity change is not overwritten.
        """
        validated_data.pop('total_capacity', None)
        if not validated_data:
            return instance

        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        instance.save(update_fields=list(validated_data.keys()) + ['updated_at'])
        return instance


class FacilitySummarySerializer(serializers.Serializer):
    """Minimal facility identity paired with a user's bookings."""

    id = serializers.IntegerField()
    name = serializers.CharField()
    location = serializers.DictField()


# ============================================================================
# Booking Serializers
# ============================================================================

class BookingCreateSerializer(serializers.Serializer):
    """
    Input for booking a facility.

    Only shapes and types are checked here; quantity, date order and
    capacity rules are enforced by the booking ledger so that every caller
    gets the same errors.

    Request body: {
        "crop": "Onion",
        "quantity": 60,
        "startDate": "2026-11-01T00:00:00Z",
        "endDate": "2026-11-06T00:00:00Z",
        "specialInstructions": "Keep away from potatoes"
    }
    """

    crop = serializers.CharField(max_length=100)
    quantity = serializers.IntegerField()
    startDate = serializers.DateTimeField()
    endDate = serializers.DateTimeField()
    specialInstructions = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_crop(self, value):
        if not value or not value.strip():
            raise serializers.ValidationError("Crop cannot be empty.")
        return value.strip()


class BookingSerializer(serializers.ModelSerializer):
    """Booking as returned to owners and requesters."""

    user = BookingUserSerializer(read_only=True)
    facility = serializers.PrimaryKeyRelatedField(read_only=True)
    startDate = serializers.DateTimeField(source='start_date', read_only=True)
    endDate = serializers.DateTimeField(source='end_date', read_only=True)
    specialInstructions = serializers.CharField(source='special_instructions', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = Booking
        fields = [
            'id',
            'facility',
            'user',
            'crop',
            'quantity',
            'startDate',
            'endDate',
            'status',
            'cost',
            'specialInstructions',
            'createdAt',
            'updatedAt',
        ]
        read_only_fields = fields


class BookingStatusUpdateSerializer(serializers.Serializer):
    """
    Input for a booking status transition.

    Any string is accepted; the ledger rejects unknown statuses after the
    ownership check so non-owners always get 403.
    """

    status = serializers.CharField(max_length=20)


class FacilityDetailSerializer(FacilitySerializer):
    """Facility with its bookings and the users behind them."""

    bookings = BookingSerializer(many=True, read_only=True)

    class Meta(FacilitySerializer.Meta):
        fields = FacilitySerializer.Meta.fields + ['bookings']


# ============================================================================
# Rating Serializers
# ============================================================================

class FacilityRatingSerializer(serializers.ModelSerializer):
    """
    Serializer for rating a facility.

    Fields:
    - rating: Required, integer from 1-5
    - comment: Optional text feedback
    """

    user = BookingUserSerializer(read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = FacilityRating
        fields = ['id', 'user', 'facility', 'rating', 'comment', 'createdAt']
        read_only_fields = ['id', 'user', 'facility', 'createdAt']
        extra_kwargs = {
            'rating': {'required': True},
        }

    def validate_rating(self, value):
        if value < 1 or value > 5:
            raise serializers.ValidationError(
                "Rating must be between 1 and 5."
            )
        return value
