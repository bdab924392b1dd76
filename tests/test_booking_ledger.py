"""
Tests for the booking ledger operations.

Tests cover:
- Booking creation (capacity decrement, cost, validation, inactive facilities)
- The 100/60/50 capacity scenario
- Status transitions (capacity restore, terminal statuses, ownership)
- Capacity resizing and facility removal
- Read operations (per-user and per-owner listings, reserved quantity)
"""

import pytest
from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal
from django.contrib.auth import get_user_model
from django.utils import timezone

from marketplace.exceptions import (
    AlreadyTerminal,
    BookingValidationError,
    InsufficientCapacity,
    InvalidTransition,
    NotAuthorized,
    NotFound,
)
from marketplace.ledger import (
    BookingLedger,
    FacilitySummary,
    booking_cost,
    days_between,
    max_booking_cost,
)
from marketplace.models import Booking, Facility

User = get_user_model()


@pytest.fixture
def owner(db):
    """Create a cold storage owner."""
    return User.objects.create_user(
        email='owner@test.com',
        username='owner',
        password='TestPass123!',
        role='coldstorage'
    )


@pytest.fixture
def other_owner(db):
    """Create a cold storage owner who does not own the test facility."""
    return User.objects.create_user(
        email='other.owner@test.com',
        username='otherowner',
        password='TestPass123!',
        role='coldstorage'
    )


@pytest.fixture
def farmer(db):
    """Create a farmer."""
    return User.objects.create_user(
        email='farmer@test.com',
        username='farmer',
        password='TestPass123!',
        role='farmer'
    )


@pytest.fixture
def facility(db, owner):
    """Create a facility with 100 units of capacity at 2.00 per unit per day."""
    return Facility.objects.create(
        owner=owner,
        name='Nashik Cold Chain',
        city='Nashik',
        state='Maharashtra',
        total_capacity=100,
        available_capacity=100,
        per_unit_per_day=Decimal('2.00')
    )


@pytest.fixture
def ledger():
    return BookingLedger()


def period(days=5, hours=0):
    start = timezone.now() + timedelta(days=1)
    return start, start + timedelta(days=days, hours=hours)


def book(ledger, facility, user, quantity, days=5):
    start, end = period(days)
    return ledger.create_booking(facility.id, user.id, 'Onion', quantity, start, end)


def open_quantity(facility):
    return sum(
        b.quantity for b in Booking.objects.filter(facility=facility)
        if b.status in Booking.OPEN_STATUSES
    )


class TestCost:
    def test_whole_days(self):
        start = datetime(2026, 11, 1, tzinfo=dt_timezone.utc)
        end = start + timedelta(days=5)
        assert days_between(start, end) == 5
        assert booking_cost(start, end, 60, Decimal('2.00')) == Decimal('600.00')

    def test_partial_day_rounds_up(self):
        start = datetime(2026, 11, 1, tzinfo=dt_timezone.utc)
        end = start + timedelta(days=1, hours=1)
        assert days_between(start, end) == 2
        assert booking_cost(start, end, 10, Decimal('1.50')) == Decimal('30.00')

    def test_cost_is_quantized_to_paise(self):
        start = datetime(2026, 11, 1, tzinfo=dt_timezone.utc)
        end = start + timedelta(hours=3)
        assert booking_cost(start, end, 3, '0.33') == Decimal('0.99')


@pytest.mark.django_db
class TestCreateBooking:
    def test_booking_decrements_capacity(self, ledger, facility, farmer):
        booking = book(ledger, facility, farmer, 60)

        facility.refresh_from_db()
        assert booking.status == Booking.STATUS_PENDING
        assert booking.facility_id == facility.id
        assert booking.user_id == farmer.id
        assert facility.available_capacity == 40
        assert facility.version == 1

    def test_booking_cost(self, ledger, facility, farmer):
        booking = book(ledger, facility, farmer, 60, days=5)
        assert booking.cost == Decimal('600.00')

    def test_booking_exact_remaining_capacity(self, ledger, facility, farmer):
        book(ledger, facility, farmer, 100)
        facility.refresh_from_db()
        assert facility.available_capacity == 0

    def test_insufficient_capacity_leaves_state_unchanged(self, ledger, facility, farmer):
        book(ledger, facility, farmer, 60)

        with pytest.raises(InsufficientCapacity) as exc_info:
            book(ledger, facility, farmer, 50)

        assert exc_info.value.message == 'Insufficient capacity available'
        facility.refresh_from_db()
        assert facility.available_capacity == 40
        assert facility.bookings.count() == 1

    @pytest.mark.parametrize('quantity', [0, -5])
    def test_non_positive_quantity_rejected(self, ledger, facility, farmer, quantity):
        with pytest.raises(BookingValidationError):
            book(ledger, facility, farmer, quantity)
        assert Booking.objects.count() == 0

    def test_end_before_start_rejected(self, ledger, facility, farmer):
        start, end = period()
        with pytest.raises(BookingValidationError):
            ledger.create_booking(facility.id, farmer.id, 'Onion', 10, end, start)

    def test_equal_dates_rejected(self, ledger, facility, farmer):
        start, _ = period()
        with pytest.raises(BookingValidationError):
            ledger.create_booking(facility.id, farmer.id, 'Onion', 10, start, start)

    def test_unknown_facility(self, ledger, farmer, db):
        start, end = period()
        with pytest.raises(NotFound):
            ledger.create_booking(99999, farmer.id, 'Onion', 10, start, end)

    def test_inactive_facility(self, ledger, facility, farmer):
        Facility.objects.filter(pk=facility.pk).update(is_active=False)
        with pytest.raises(NotFound):
            book(ledger, facility, farmer, 10)


@pytest.fixture
def warehouse(db, owner):
    """A very large facility, big enough for costs near the column limit."""
    return Facility.objects.create(
        owner=owner,
        name='Central Warehouse',
        total_capacity=2_000_000_000,
        available_capacity=2_000_000_000,
        per_unit_per_day=Decimal('10.00')
    )


@pytest.mark.django_db
class TestBookingCostLimit:
    def test_max_cost_matches_cost_column(self):
        assert max_booking_cost() == Decimal('999999999999.99')

    def test_cost_above_limit_rejected_without_changes(self, ledger, warehouse, farmer):
        start = datetime(2026, 11, 1, tzinfo=dt_timezone.utc)
        end = datetime(2027, 11, 1, tzinfo=dt_timezone.utc)

        with pytest.raises(BookingValidationError) as exc_info:
            ledger.create_booking(warehouse.id, farmer.id, 'Potato', 1_000_000_000, start, end)

        assert 'exceeds the maximum' in exc_info.value.message
        warehouse.refresh_from_db()
        assert warehouse.available_capacity == 2_000_000_000
        assert warehouse.version == 0
        assert Booking.objects.count() == 0

    def test_cost_just_below_limit_accepted(self, ledger, warehouse, farmer):
        booking = book(ledger, warehouse, farmer, 99_999_999, days=1000)

        assert booking.cost == Decimal('999999990000.00')
        warehouse.refresh_from_db()
        assert warehouse.available_capacity == 2_000_000_000 - 99_999_999


@pytest.mark.django_db
def test_capacity_scenario_100_60_50(ledger, facility, farmer, owner):
    """60 fits, 50 does not, cancelling the 60 frees room for the 50."""
    first = book(ledger, facility, farmer, 60)
    facility.refresh_from_db()
    assert facility.available_capacity == 40

    with pytest.raises(InsufficientCapacity):
        book(ledger, facility, farmer, 50)
    facility.refresh_from_db()
    assert facility.available_capacity == 40

    ledger.transition_booking_status(facility.id, first.id, 'cancelled', owner.id)
    facility.refresh_from_db()
    assert facility.available_capacity == 100

    book(ledger, facility, farmer, 50)
    facility.refresh_from_db()
    assert facility.available_capacity == 50
    assert facility.available_capacity == facility.total_capacity - open_quantity(facility)


@pytest.mark.django_db
class TestTransitionBookingStatus:
    def test_non_terminal_transition_keeps_capacity(self, ledger, facility, farmer, owner):
        booking = book(ledger, facility, farmer, 30)

        updated = ledger.transition_booking_status(facility.id, booking.id, 'confirmed', owner.id)

        facility.refresh_from_db()
        assert updated.status == 'confirmed'
        assert facility.available_capacity == 70

    def test_owner_may_skip_states(self, ledger, facility, farmer, owner):
        booking = book(ledger, facility, farmer, 30)
        updated = ledger.transition_booking_status(facility.id, booking.id, 'active', owner.id)
        assert updated.status == 'active'

    @pytest.mark.parametrize('terminal', ['completed', 'cancelled'])
    def test_terminal_transition_restores_capacity(self, ledger, facility, farmer, owner, terminal):
        booking = book(ledger, facility, farmer, 30)
        ledger.transition_booking_status(facility.id, booking.id, 'confirmed', owner.id)

        updated = ledger.transition_booking_status(facility.id, booking.id, terminal, owner.id)

        facility.refresh_from_db()
        assert updated.status == terminal
        assert facility.available_capacity == 100

    def test_repeated_terminal_status_restores_once(self, ledger, facility, farmer, owner):
        booking = book(ledger, facility, farmer, 30)
        ledger.transition_booking_status(facility.id, booking.id, 'cancelled', owner.id)

        with pytest.raises(AlreadyTerminal):
            ledger.transition_booking_status(facility.id, booking.id, 'cancelled', owner.id)

        facility.refresh_from_db()
        assert facility.available_capacity == 100

    def test_leaving_terminal_status_rejected(self, ledger, facility, farmer, owner):
        booking = book(ledger, facility, farmer, 30)
        ledger.transition_booking_status(facility.id, booking.id, 'completed', owner.id)

        for new_status in ['pending', 'confirmed', 'active', 'cancelled']:
            with pytest.raises(InvalidTransition):
                ledger.transition_booking_status(facility.id, booking.id, new_status, owner.id)

        booking.refresh_from_db()
        facility.refresh_from_db()
        assert booking.status == 'completed'
        assert facility.available_capacity == 100

    def test_non_owner_rejected_without_changes(self, ledger, facility, farmer, other_owner):
        booking = book(ledger, facility, farmer, 30)
        facility.refresh_from_db()
        version = facility.version

        with pytest.raises(NotAuthorized):
            ledger.transition_booking_status(facility.id, booking.id, 'cancelled', other_owner.id)

        booking.refresh_from_db()
        facility.refresh_from_db()
        assert booking.status == 'pending'
        assert facility.available_capacity == 70
        assert facility.version == version

    def test_non_owner_with_invalid_status_is_not_authorized(self, ledger, facility, farmer, other_owner):
        booking = book(ledger, facility, farmer, 30)
        with pytest.raises(NotAuthorized):
            ledger.transition_booking_status(facility.id, booking.id, 'shipped', other_owner.id)

    def test_unknown_status_rejected(self, ledger, facility, farmer, owner):
        booking = book(ledger, facility, farmer, 30)
        with pytest.raises(BookingValidationError):
            ledger.transition_booking_status(facility.id, booking.id, 'shipped', owner.id)

    def test_booking_of_another_facility_not_found(self, ledger, facility, farmer, owner):
        other = Facility.objects.create(
            owner=owner,
            name='Second Facility',
            total_capacity=50,
            available_capacity=50,
            per_unit_per_day=Decimal('1.00')
        )
        booking = book(ledger, other, farmer, 10)

        with pytest.raises(NotFound):
            ledger.transition_booking_status(facility.id, booking.id, 'confirmed', owner.id)

    def test_unknown_booking(self, ledger, facility, owner):
        with pytest.raises(NotFound):
            ledger.transition_booking_status(facility.id, 424242, 'confirmed', owner.id)


@pytest.mark.django_db
class TestResizeCapacity:
    def test_grow_capacity(self, ledger, facility, farmer, owner):
        book(ledger, facility, farmer, 60)

        ledger.resize_capacity(facility.id, owner.id, 200)

        facility.refresh_from_db()
        assert facility.total_capacity == 200
        assert facility.available_capacity == 140

    def test_shrink_to_reserved(self, ledger, facility, farmer, owner):
        book(ledger, facility, farmer, 60)

        ledger.resize_capacity(facility.id, owner.id, 60)

        facility.refresh_from_db()
        assert facility.available_capacity == 0

    def test_shrink_below_reserved_rejected(self, ledger, facility, farmer, owner):
        book(ledger, facility, farmer, 60)

        with pytest.raises(BookingValidationError):
            ledger.resize_capacity(facility.id, owner.id, 59)

        facility.refresh_from_db()
        assert facility.total_capacity == 100
        assert facility.available_capacity == 40

    def test_terminal_bookings_do_not_count(self, ledger, facility, farmer, owner):
        booking = book(ledger, facility, farmer, 60)
        ledger.transition_booking_status(facility.id, booking.id, 'completed', owner.id)

        ledger.resize_capacity(facility.id, owner.id, 10)

        facility.refresh_from_db()
        assert facility.available_capacity == 10

    def test_non_owner_rejected(self, ledger, facility, other_owner):
        with pytest.raises(NotAuthorized):
            ledger.resize_capacity(facility.id, other_owner.id, 500)

    def test_negative_total_rejected(self, ledger, facility, owner):
        with pytest.raises(BookingValidationError):
            ledger.resize_capacity(facility.id, owner.id, -1)


@pytest.mark.django_db
class TestRemoveFacility:
    def test_unbooked_facility_is_deleted(self, ledger, facility, owner):
        assert ledger.remove_facility(facility.id, owner.id) == 'deleted'
        assert not Facility.objects.filter(pk=facility.pk).exists()

    def test_booked_facility_is_deactivated(self, ledger, facility, farmer, owner):
        booking = book(ledger, facility, farmer, 20)

        assert ledger.remove_facility(facility.id, owner.id) == 'deactivated'

        facility.refresh_from_db()
        assert facility.is_active is False
        assert Booking.objects.filter(pk=booking.pk).exists()

    def test_non_owner_rejected(self, ledger, facility, other_owner):
        with pytest.raises(NotAuthorized):
            ledger.remove_facility(facility.id, other_owner.id)
        assert Facility.objects.filter(pk=facility.pk).exists()


@pytest.mark.django_db
class TestReads:
    def test_list_bookings_for_user(self, ledger, facility, farmer, owner):
        other_farmer = User.objects.create_user(
            email='farmer2@test.com', username='farmer2', password='TestPass123!'
        )
        mine = book(ledger, facility, farmer, 10)
        book(ledger, facility, other_farmer, 10)

        results = ledger.list_bookings_for_user(farmer.id)

        assert len(results) == 1
        summary, booking = results[0]
        assert isinstance(summary, FacilitySummary)
        assert summary.id == facility.id
        assert summary.name == 'Nashik Cold Chain'
        assert summary.location['city'] == 'Nashik'
        assert booking.id == mine.id

    def test_list_bookings_for_owner_in_creation_order(self, ledger, facility, farmer, owner):
        first = book(ledger, facility, farmer, 10)
        second = book(ledger, facility, farmer, 20)

        bookings = ledger.list_bookings_for_owner(facility.id, owner.id)

        assert [b.id for b in bookings] == [first.id, second.id]

    def test_list_bookings_for_owner_requires_owner(self, ledger, facility, other_owner):
        with pytest.raises(NotAuthorized):
            ledger.list_bookings_for_owner(facility.id, other_owner.id)

    def test_list_bookings_for_owner_unknown_facility(self, ledger, owner):
        with pytest.raises(NotFound):
            ledger.list_bookings_for_owner(99999, owner.id)

    def test_reserved_quantity_counts_open_bookings(self, ledger, facility, farmer, owner):
        book(ledger, facility, farmer, 10)
        confirmed = book(ledger, facility, farmer, 20)
        cancelled = book(ledger, facility, farmer, 30)
        ledger.transition_booking_status(facility.id, confirmed.id, 'confirmed', owner.id)
        ledger.transition_booking_status(facility.id, cancelled.id, 'cancelled', owner.id)

        assert ledger.reserved_quantity(facility.id) == 30
