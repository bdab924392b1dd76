"""
Property-style tests for the facility capacity invariant.

Random sequences of bookings, status transitions and resizes are applied
through the ledger; after every step the facility must satisfy

    available_capacity == total_capacity - sum(quantity of open bookings)

and available capacity must never be negative.
"""

import random

import pytest
from datetime import timedelta
from decimal import Decimal
from django.contrib.auth import get_user_model
from django.db.models import Sum
from django.utils import timezone

from marketplace.exceptions import LedgerError
from marketplace.ledger import BookingLedger, booking_cost
from marketplace.models import Booking, Facility

User = get_user_model()

STATUSES = ['pending', 'confirmed', 'active', 'completed', 'cancelled']


@pytest.fixture
def owner(db):
    return User.objects.create_user(
        email='owner@test.com', username='owner', password='TestPass123!', role='coldstorage'
    )


@pytest.fixture
def farmers(db):
    return [
        User.objects.create_user(
            email=f'farmer{i}@test.com', username=f'farmer{i}', password='TestPass123!'
        )
        for i in range(3)
    ]


@pytest.fixture
def facility(db, owner):
    return Facility.objects.create(
        owner=owner,
        name='Invariant Cold Storage',
        total_capacity=120,
        available_capacity=120,
        per_unit_per_day=Decimal('3.25')
    )


def assert_invariant(facility):
    facility.refresh_from_db()
    reserved = Booking.objects.filter(
        facility=facility, status__in=Booking.OPEN_STATUSES
    ).aggregate(total=Sum('quantity'))['total'] or 0
    assert facility.available_capacity >= 0
    assert facility.available_capacity <= facility.total_capacity
    assert facility.available_capacity == facility.total_capacity - reserved


@pytest.mark.django_db
@pytest.mark.parametrize('seed', range(8))
def test_random_operations_preserve_capacity_invariant(seed, owner, farmers, facility):
    rng = random.Random(seed)
    ledger = BookingLedger()
    now = timezone.now()

    for _ in range(40):
        action = rng.choice(['book', 'book', 'transition', 'transition', 'resize'])
        try:
            if action == 'book':
                start = now + timedelta(hours=rng.randint(0, 500))
                end = start + timedelta(hours=rng.randint(1, 400))
                quantity = rng.randint(1, 70)
                facility.refresh_from_db()
                before = facility.available_capacity

                booking = ledger.create_booking(
                    facility.id, rng.choice(farmers).id, 'Tomato', quantity, start, end
                )

                # Accepted bookings never exceed what was available
                assert quantity <= before
                assert booking.cost == booking_cost(start, end, quantity, Decimal('3.25'))
            elif action == 'transition':
                bookings = list(Booking.objects.filter(facility=facility))
                if not bookings:
                    continue
                booking = rng.choice(bookings)
                ledger.transition_booking_status(
                    facility.id, booking.id, rng.choice(STATUSES), owner.id
                )
            else:
                ledger.resize_capacity(facility.id, owner.id, rng.randint(0, 200))
        except LedgerError:
            pass

        assert_invariant(facility)


@pytest.mark.django_db
@pytest.mark.parametrize('terminal', ['completed', 'cancelled'])
def test_restore_happens_exactly_once(owner, farmers, facility, terminal):
    ledger = BookingLedger()
    start = timezone.now()
    booking = ledger.create_booking(
        facility.id, farmers[0].id, 'Grapes', 45, start, start + timedelta(days=2)
    )

    for new_status in ['confirmed', 'active', terminal]:
        ledger.transition_booking_status(facility.id, booking.id, new_status, owner.id)

    for new_status in STATUSES:
        with pytest.raises(LedgerError):
            ledger.transition_booking_status(facility.id, booking.id, new_status, owner.id)

    facility.refresh_from_db()
    assert facility.available_capacity == 120
    assert_invariant(facility)
