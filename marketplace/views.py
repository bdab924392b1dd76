"""
API views for the cold-storage marketplace.

Every capacity or booking mutation goes through ``BookingLedger``; views
only authenticate, parse input, call the ledger and render the outcome.
Errors are rendered as ``{"message": ..., "error": ...}``.
"""

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.paginator import EmptyPage, Paginator
from django.db import transaction
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.views import TokenObtainPairView

from .exceptions import LedgerError, NotAuthorized, NotFound
from .ledger import BookingLedger
from .models import Facility, FacilityRating
from .permissions import IsColdStorageOwner, IsFacilityOwner
from .serializers import (
    BookingCreateSerializer,
    BookingSerializer,
    BookingStatusUpdateSerializer,
    EmailTokenObtainPairSerializer,
    FacilityDetailSerializer,
    FacilityRatingSerializer,
    FacilitySerializer,
    FacilitySummarySerializer,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def get_client_ip(request):
    """
    Get client IP address from request.
    Handles proxy headers for accurate IP detection.
    """
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0]
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip


def error_response(message, error, status_code):
    return Response({'message': message, 'error': error}, status=status_code)


def ledger_error_response(exc):
    return Response(exc.as_response_data(), status=exc.status_code)


def validation_error_response(errors):
    return error_response('Validation failed', errors, status.HTTP_400_BAD_REQUEST)


def server_error_response(exc):
    return error_response('An unexpected error occurred.', 'Unexpected', status.HTTP_500_INTERNAL_SERVER_ERROR)


def unauthenticated_response():
    return error_response(
        'Authentication credentials were not provided.',
        'NotAuthenticated',
        status.HTTP_401_UNAUTHORIZED,
    )


def parse_positive_int(value, default, maximum=None):
    """Parse a positive integer query parameter, falling back to ``default``."""
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    if number < 1:
        return default
    if maximum is not None and number > maximum:
        return maximum
    return number


class EmailTokenObtainPairView(TokenObtainPairView):
    """
    Custom view to use email-based authentication instead of username.
    """
    serializer_class = EmailTokenObtainPairSerializer


# ============================================================================
# Facility Views
# ============================================================================

class FacilityListCreateView(APIView):
    """
    API endpoint for listing and creating cold-storage facilities.

    GET /api/coldstorage/ (public)
    Query Parameters:
    - city: Case-insensitive partial match on city
    - state: Case-insensitive partial match on state
    - minCapacity / maxCapacity: Bounds on total capacity
    - page: Page number (default 1)
    - limit: Page size (default 10, max 100)

    Success response (200):
    {
        "coldStorages": [...],
        "totalPages": 3,
        "currentPage": 1,
        "total": 25
    }

    POST /api/coldstorage/ (cold-storage owners only)
    Creates a facility owned by the caller with all capacity available.

    Error responses:
    - 400: Invalid query parameters or body
    - 401: Missing, invalid, or expired JWT token
    - 403: Caller is not a cold-storage owner
    """
    permission_classes = [AllowAny]  # Will check manually for better error messages

    def get(self, request, *args, **kwargs):
        try:
            queryset = Facility.objects.filter(is_active=True).select_related('owner')

            city = request.query_params.get('city')
            if city:
                queryset = queryset.filter(city__icontains=city)

            state = request.query_params.get('state')
            if state:
                queryset = queryset.filter(state__icontains=state)

            bounds = {}
            for param in ('minCapacity', 'maxCapacity'):
                raw = request.query_params.get(param)
                if raw is None or raw == '':
                    continue
                try:
                    bounds[param] = int(raw)
                except ValueError:
                    return error_response(
                        f'Invalid value for "{param}". Must be an integer.',
                        'ValidationError',
                        status.HTTP_400_BAD_REQUEST,
                    )

            if 'minCapacity' in bounds:
                queryset = queryset.filter(total_capacity__gte=bounds['minCapacity'])
            if 'maxCapacity' in bounds:
                queryset = queryset.filter(total_capacity__lte=bounds['maxCapacity'])

            queryset = queryset.order_by('-rating_average', '-created_at', '-id')

            page = parse_positive_int(request.query_params.get('page'), 1)
            limit = parse_positive_int(request.query_params.get('limit'), DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE)

            paginator = Paginator(queryset, limit)
            try:
                facilities = paginator.page(page).object_list
            except EmptyPage:
                facilities = []

            serializer = FacilitySerializer(facilities, many=True, context={'request': request})

            logger.info(
                f"Facility listing retrieved: {len(serializer.data)} facilities on page {page}"
            )

            return Response(
                {
                    'coldStorages': serializer.data,
                    'totalPages': paginator.num_pages if paginator.count else 0,
                    'currentPage': page,
                    'total': paginator.count,
                },
                status=status.HTTP_200_OK
            )

        except Exception as e:
            logger.error(f"Error in facility listing: {str(e)}")
            return server_error_response(e)

    def post(self, request, *args, **kwargs):
        if not request.user or not request.user.is_authenticated:
            return unauthenticated_response()

        permission = IsColdStorageOwner()
        if not permission.has_permission(request, self):
            logger.warning(
                f"Non-owner attempted facility creation. "
                f"User: {request.user.email}, Role: {getattr(request.user, 'role', 'unknown')}, "
                f"IP: {get_client_ip(request)}"
            )
            return error_response(permission.message, 'NotAuthorized', status.HTTP_403_FORBIDDEN)

        serializer = FacilitySerializer(data=request.data, context={'request': request})
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        try:
            facility = serializer.save()
        except DjangoValidationError as e:
            return validation_error_response(e.message_dict if hasattr(e, 'message_dict') else e.messages)

        logger.info(
            f"Facility created successfully. "
            f"Facility ID: {facility.id}, Name: {facility.name}, "
            f"Owner: {request.user.email} (ID: {request.user.id}), "
            f"IP: {get_client_ip(request)}"
        )

        return Response(
            {
                'message': 'Cold storage facility created successfully',
                'coldStorage': FacilitySerializer(facility, context={'request': request}).data,
            },
            status=status.HTTP_201_CREATED
        )


class FacilityDetailView(APIView):
    """
    API endpoint for a single facility.

    GET /api/coldstorage/<id>/ (public)
    Returns the facility with its owner and bookings (booking users populated).
    Deactivated facilities are only visible to their owner.

    PUT /api/coldstorage/<id>/ (owner only)
    Partial update. A changed facilities.totalCapacity is applied through the
    booking ledger so open reservations stay covered.

    DELETE /api/coldstorage/<id>/ (owner only)
    Deactivates a facility that has bookings, deletes one that has none.

    Error responses:
    - 400: Invalid data, or total capacity below reserved quantity
    - 401: Missing, invalid, or expired JWT token
    - 403: Caller does not own the facility
    - 404: Facility not found
    - 409: Concurrent modification, retry
    """
    permission_classes = [AllowAny]  # Will check manually for better error messages

    def get_facility(self, pk):
        try:
            return Facility.objects.select_related('owner').get(pk=pk)
        except Facility.DoesNotExist:
            raise NotFound('Cold storage facility not found')

    def check_owner(self, request, facility):
        """Raise NotAuthorized unless the caller is a cold-storage owner owning ``facility``."""
        if not IsColdStorageOwner().has_permission(request, self) or \
                not IsFacilityOwner().has_object_permission(request, self, facility):
            logger.warning(
                f"Unauthorized facility modification attempt. "
                f"Facility ID: {facility.id}, "
                f"User: {request.user.email} (ID: {request.user.id}), "
                f"IP: {get_client_ip(request)}"
            )
            raise NotAuthorized()

    def get(self, request, pk, *args, **kwargs):
        try:
            facility = Facility.objects.select_related('owner').prefetch_related(
                'bookings__user'
            ).get(pk=pk)
        except Facility.DoesNotExist:
            return ledger_error_response(NotFound('Cold storage facility not found'))

        if not facility.is_active and facility.owner_id != request.user.id:
            return ledger_error_response(NotFound('Cold storage facility not found'))

        serializer = FacilityDetailSerializer(facility, context={'request': request})
        return Response(serializer.data, status=status.HTTP_200_OK)

    def put(self, request, pk, *args, **kwargs):
        if not request.user or not request.user.is_authenticated:
            return unauthenticated_response()

        try:
            facility = self.get_facility(pk)
            self.check_owner(request, facility)

            serializer = FacilitySerializer(
                facility,
                data=request.data,
                partial=True,
                context={'request': request}
            )
            if not serializer.is_valid():
                return validation_error_response(serializer.errors)

            with transaction.atomic():
                total_capacity = serializer.validated_data.get('total_capacity')
                if total_capacity is not None and total_capacity != facility.total_capacity:
                    BookingLedger().resize_capacity(facility.id, request.user.id, total_capacity)
                serializer.save()

            facility.refresh_from_db()

        except LedgerError as e:
            return ledger_error_response(e)
        except DjangoValidationError as e:
            return validation_error_response(e.message_dict if hasattr(e, 'message_dict') else e.messages)

        logger.info(
            f"Facility updated. Facility ID: {facility.id}, "
            f"User: {request.user.email} (ID: {request.user.id}), "
            f"IP: {get_client_ip(request)}"
        )

        return Response(
            {
                'message': 'Cold storage facility updated successfully',
                'coldStorage': FacilitySerializer(facility, context={'request': request}).data,
            },
            status=status.HTTP_200_OK
        )

    def delete(self, request, pk, *args, **kwargs):
        if not request.user or not request.user.is_authenticated:
            return unauthenticated_response()

        try:
            facility = self.get_facility(pk)
            self.check_owner(request, facility)
            outcome = BookingLedger().remove_facility(facility.id, request.user.id)
        except LedgerError as e:
            return ledger_error_response(e)

        logger.info(
            f"Facility {outcome}. Facility ID: {pk}, "
            f"User: {request.user.email} (ID: {request.user.id}), "
            f"IP: {get_client_ip(request)}"
        )

        if outcome == 'deactivated':
            message = 'Cold storage facility deactivated; existing bookings are kept'
        else:
            message = 'Cold storage facility deleted successfully'
        return Response({'message': message, 'outcome': outcome}, status=status.HTTP_200_OK)


class OwnerFacilitiesView(APIView):
    """
    API endpoint listing the caller's own facilities, newest first.

    GET /api/coldstorage/owner/my-facilities/ (cold-storage owners only)
    Includes deactivated facilities.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        permission = IsColdStorageOwner()
        if not permission.has_permission(request, self):
            return error_response(permission.message, 'NotAuthorized', status.HTTP_403_FORBIDDEN)

        facilities = Facility.objects.filter(owner=request.user).select_related('owner').order_by('-created_at', '-id')
        serializer = FacilitySerializer(facilities, many=True, context={'request': request})
        return Response(serializer.data, status=status.HTTP_200_OK)


# ============================================================================
# Booking Views
# ============================================================================

class BookingCreateView(APIView):
    """
    API endpoint for booking capacity at a facility.

    POST /api/coldstorage/<id>/book/
    Headers: Authorization: Bearer <access_token>
    Request body: {
        "crop": "Onion",
        "quantity": 60,
        "startDate": "2026-11-01T00:00:00Z",
        "endDate": "2026-11-06T00:00:00Z",
        "specialInstructions": ""
    }

    Success response (201):
    {
        "message": "Cold storage booking created successfully",
        "booking": {
            "id": 1,
            ...,
            "status": "pending",
            "cost": "600.00",
            "facility": "Nashik Cold Chain",
            "totalCost": "600.00"
        }
    }

    Error responses:
    - 400: Invalid data or insufficient capacity
    - 401: Missing, invalid, or expired JWT token
    - 404: Facility not found or inactive
    - 409: Concurrent modification, retry
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, pk, *args, **kwargs):
        serializer = BookingCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        data = serializer.validated_data
        try:
            booking = BookingLedger().create_booking(
                facility_id=pk,
                requester_id=request.user.id,
                crop=data['crop'],
                quantity=data['quantity'],
                start_date=data['startDate'],
                end_date=data['endDate'],
                special_instructions=data.get('specialInstructions', ''),
            )
        except LedgerError as e:
            logger.warning(
                f"Booking rejected. Facility ID: {pk}, Reason: {e.error_code}, "
                f"User: {request.user.email} (ID: {request.user.id}), "
                f"IP: {get_client_ip(request)}"
            )
            return ledger_error_response(e)
        except Exception as e:
            logger.error(
                f"Error creating booking: {str(e)}, "
                f"User: {request.user.email}, "
                f"IP: {get_client_ip(request)}"
            )
            return server_error_response(e)

        booking_data = BookingSerializer(booking, context={'request': request}).data
        booking_data['facility'] = booking.facility.name
        booking_data['totalCost'] = booking_data['cost']

        logger.info(
            f"Booking created via API. Booking ID: {booking.id}, Facility ID: {pk}, "
            f"User: {request.user.email} (ID: {request.user.id}), "
            f"IP: {get_client_ip(request)}"
        )

        return Response(
            {
                'message': 'Cold storage booking created successfully',
                'booking': booking_data,
            },
            status=status.HTTP_201_CREATED
        )


class UserBookingsView(APIView):
    """
    API endpoint for the caller's own bookings across facilities.

    GET /api/coldstorage/user/bookings/

    Success response (200): one entry per facility the caller booked
    [
        {
            "id": 3,
            "name": "Nashik Cold Chain",
            "location": {"address": "...", "city": "Nashik", "state": "...", "pincode": "..."},
            "bookings": [{...}, {...}]
        }
    ]
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        grouped = {}
        for summary, booking in BookingLedger().list_bookings_for_user(request.user.id):
            entry = grouped.get(summary.id)
            if entry is None:
                entry = FacilitySummarySerializer(summary._asdict()).data
                entry['bookings'] = []
                grouped[summary.id] = entry
            entry['bookings'].append(BookingSerializer(booking, context={'request': request}).data)

        return Response(list(grouped.values()), status=status.HTTP_200_OK)


class BookingStatusUpdateView(APIView):
    """
    API endpoint for moving a booking through its lifecycle.

    PUT /api/coldstorage/<id>/booking/<booking_id>/ (facility owner only)
    Request body: {"status": "confirmed"}

    Completing or cancelling an open booking returns its quantity to the
    facility exactly once.

    Error responses:
    - 400: Unknown status, booking already terminal
    - 401: Missing, invalid, or expired JWT token
    - 403: Caller does not own the facility
    - 404: Facility or booking not found
    - 409: Concurrent modification, retry
    """
    permission_classes = [IsAuthenticated]

    def put(self, request, pk, booking_id, *args, **kwargs):
        permission = IsColdStorageOwner()
        if not permission.has_permission(request, self):
            logger.warning(
                f"Non-owner attempted booking status update. "
                f"Facility ID: {pk}, Booking ID: {booking_id}, "
                f"User: {request.user.email} (ID: {request.user.id}), "
                f"IP: {get_client_ip(request)}"
            )
            return error_response(permission.message, 'NotAuthorized', status.HTTP_403_FORBIDDEN)

        serializer = BookingStatusUpdateSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        try:
            booking = BookingLedger().transition_booking_status(
                facility_id=pk,
                booking_id=booking_id,
                new_status=serializer.validated_data['status'],
                actor_id=request.user.id,
            )
        except LedgerError as e:
            logger.warning(
                f"Booking status update rejected. "
                f"Facility ID: {pk}, Booking ID: {booking_id}, Reason: {e.error_code}, "
                f"User: {request.user.email} (ID: {request.user.id}), "
                f"IP: {get_client_ip(request)}"
            )
            return ledger_error_response(e)

        return Response(
            {
                'message': 'Booking status updated successfully',
                'booking': BookingSerializer(booking, context={'request': request}).data,
            },
            status=status.HTTP_200_OK
        )


class FacilityBookingsView(APIView):
    """
    API endpoint for the owner's view of all bookings at a facility.

    GET /api/coldstorage/<id>/bookings/ (facility owner only)
    Returns bookings oldest first with the booking users populated.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, pk, *args, **kwargs):
        permission = IsColdStorageOwner()
        if not permission.has_permission(request, self):
            return error_response(permission.message, 'NotAuthorized', status.HTTP_403_FORBIDDEN)

        try:
            bookings = BookingLedger().list_bookings_for_owner(pk, request.user.id)
        except LedgerError as e:
            return ledger_error_response(e)

        serializer = BookingSerializer(bookings, many=True, context={'request': request})
        return Response(serializer.data, status=status.HTTP_200_OK)


# ============================================================================
# Rating Views
# ============================================================================

class FacilityRatingView(APIView):
    """
    API endpoint for rating a facility.

    POST /api/coldstorage/<id>/rate/
    Request body: {"rating": 5, "comment": "Well maintained"}

    A user may rate a facility once they hold a completed booking there;
    rating again replaces the earlier rating. The facility's rating
    aggregate is refreshed by signal receivers.

    Error responses:
    - 400: Invalid rating or no completed booking
    - 401: Missing, invalid, or expired JWT token
    - 404: Facility not found
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, pk, *args, **kwargs):
        try:
            facility = Facility.objects.get(pk=pk)
        except Facility.DoesNotExist:
            return ledger_error_response(NotFound('Cold storage facility not found'))

        existing = FacilityRating.objects.filter(user=request.user, facility=facility).first()
        serializer = FacilityRatingSerializer(existing, data=request.data, context={'request': request})
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        try:
            rating = serializer.save(user=request.user, facility=facility)
        except DjangoValidationError as e:
            return validation_error_response(e.message_dict if hasattr(e, 'message_dict') else e.messages)

        facility.refresh_from_db()

        logger.info(
            f"Facility rated. Facility ID: {facility.id}, Rating: {rating.rating}, "
            f"User: {request.user.email} (ID: {request.user.id}), "
            f"IP: {get_client_ip(request)}"
        )

        return Response(
            {
                'message': 'Rating saved successfully',
                'rating': FacilityRatingSerializer(rating, context={'request': request}).data,
                'ratings': {
                    'average': str(facility.rating_average),
                    'count': facility.rating_count,
                },
            },
            status=status.HTTP_201_CREATED if existing is None else status.HTTP_200_OK
        )
