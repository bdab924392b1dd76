"""
Capacity-aware booking ledger for cold-storage facilities.

The ledger is the only writer of a facility's capacity counter and booking
statuses. It keeps, for every facility::

    available_capacity == total_capacity - sum(quantity of open bookings)

where open means pending, confirmed or active. Each operation reads the
facility, validates against that snapshot and asks the store to apply the
change as one compare-and-swap on the facility version. Lost races are
retried with a fresh snapshot up to ``LEDGER_MAX_RETRIES`` times.
"""

import logging
import math
from collections import namedtuple
from decimal import Decimal

from django.conf import settings

from .exceptions import (
    AlreadyTerminal,
    BookingValidationError,
    ConcurrentModification,
    InsufficientCapacity,
    InvalidTransition,
    NotAuthorized,
    NotFound,
)
from .models import Booking
from .store import DjangoFacilityStore, StaleAggregate

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60

FacilitySummary = namedtuple('FacilitySummary', ['id', 'name', 'location'])


def days_between(start_date, end_date):
    """Whole days covered by the period, rounding any partial day up."""
    seconds = (end_date - start_date).total_seconds()
    return math.ceil(seconds / SECONDS_PER_DAY)


def booking_cost(start_date, end_date, quantity, per_unit_per_day):
    """
    Storage cost for a booking.

    cost = ceil(days) x quantity x per_unit_per_day
    """
    rate = Decimal(str(per_unit_per_day))
    return (Decimal(days_between(start_date, end_date)) * quantity * rate).quantize(Decimal('0.01'))


def max_booking_cost():
    """Largest cost the ``Booking.cost`` column can hold."""
    field = Booking._meta.get_field('cost')
    return Decimal(10) ** (field.max_digits - field.decimal_places) - Decimal(10) ** -field.decimal_places


class BookingLedger:
    """
    Booking operations on facility aggregates.

    Args:
        store: FacilityStore implementation; defaults to the ORM-backed store
        max_retries: Optimistic retries after the first attempt; defaults to
            ``settings.LEDGER_MAX_RETRIES``
    """

    def __init__(self, store=None, max_retries=None):
        self.store = store or DjangoFacilityStore()
        if max_retries is None:
            max_retries = getattr(settings, 'LEDGER_MAX_RETRIES', 3)
        self.max_retries = max_retries

    def _run(self, operation, facility_id, attempt_fn):
        """
        Call ``attempt_fn`` until it succeeds or the retry budget is spent.

        ``attempt_fn`` re-reads the facility on every call; StaleAggregate
        means nothing was written and the attempt can simply be repeated.
        """
        for attempt in range(self.max_retries + 1):
            try:
                return attempt_fn()
            except StaleAggregate as e:
                logger.info(
                    f"Optimistic update lost a race. Operation: {operation}, "
                    f"Facility ID: {facility_id}, Attempt: {attempt + 1}, Detail: {e}"
                )
        logger.warning(
            f"Giving up after {self.max_retries + 1} attempts. "
            f"Operation: {operation}, Facility ID: {facility_id}"
        )
        raise ConcurrentModification()

    def _require_owner(self, facility, actor_id):
        if facility.owner_id != actor_id:
            raise NotAuthorized()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_booking(self, facility_id, requester_id, crop, quantity, start_date, end_date,
                       special_instructions=''):
        """
        Reserve capacity at a facility.

        Returns:
            Booking: The new booking, status ``pending``

        Raises:
            BookingValidationError: quantity <= 0 or end_date <= start_date
            NotFound: Unknown or inactive facility
            InsufficientCapacity: quantity exceeds available capacity
            BookingValidationError: the cost is too large to record
            ConcurrentModification: Retry budget exhausted
        """
        if quantity is None or quantity <= 0:
            raise BookingValidationError('Quantity must be greater than 0.')
        if start_date is None or end_date is None or end_date <= start_date:
            raise BookingValidationError('End date must be after start date.')

        def attempt():
            facility = self.store.get_facility(facility_id)
            if not facility.is_active:
                raise NotFound('Cold storage facility not found')

            if quantity > facility.available_capacity:
                raise InsufficientCapacity()

            cost = booking_cost(start_date, end_date, quantity, facility.per_unit_per_day)
            limit = max_booking_cost()
            if cost > limit:
                raise BookingValidationError(
                    f'Booking cost {cost} exceeds the maximum of {limit}. '
                    f'Book a smaller quantity or a shorter period.'
                )

            booking = Booking(
                user_id=requester_id,
                crop=crop,
                quantity=quantity,
                start_date=start_date,
                end_date=end_date,
                status=Booking.STATUS_PENDING,
                cost=cost,
                special_instructions=special_instructions or '',
            )
            self.store.add_booking(facility, booking)

            logger.info(
                f"Booking created. Booking ID: {booking.pk}, Facility ID: {facility.pk}, "
                f"Quantity: {quantity}, Cost: {booking.cost}, "
                f"Available Capacity: {facility.available_capacity}"
            )
            return booking

        return self._run('create_booking', facility_id, attempt)

    def transition_booking_status(self, facility_id, booking_id, new_status, actor_id):
        """
        Move a booking to ``new_status`` on behalf of the facility owner.

        Completing or cancelling an open booking gives its quantity back to
        the facility, in the same atomic write as the status change.

        Raises:
            NotFound: Unknown facility or booking
            NotAuthorized: actor is not the facility owner
            BookingValidationError: Unknown status
            AlreadyTerminal: Booking already has the requested terminal status
            InvalidTransition: Booking is terminal and a different status was requested
        """
        valid_statuses = [choice for choice, _ in Booking.STATUS_CHOICES]

        def attempt():
            facility = self.store.get_facility(facility_id)
            self._require_owner(facility, actor_id)
            if new_status not in valid_statuses:
                raise BookingValidationError(
                    f'Invalid status "{new_status}". Valid options: {", ".join(valid_statuses)}'
                )
            booking = self.store.get_booking(facility, booking_id)
            old_status = booking.status

            if booking.is_terminal:
                if old_status == new_status:
                    raise AlreadyTerminal(f'Booking is already {old_status}.')
                raise InvalidTransition(f'Cannot modify a {old_status} booking.')

            restore = new_status in Booking.TERMINAL_STATUSES
            self.store.change_booking_status(facility, booking, new_status, restore)

            logger.info(
                f"Booking status updated. Booking ID: {booking.pk}, Facility ID: {facility.pk}, "
                f"Old Status: {old_status}, New Status: {new_status}, "
                f"Capacity Restored: {booking.quantity if restore else 0}"
            )
            return booking

        return self._run('transition_booking_status', facility_id, attempt)

    def resize_capacity(self, facility_id, actor_id, total_capacity):
        """
        Change a facility's total capacity, keeping open reservations intact.

        Raises:
            BookingValidationError: New total is negative or below reserved quantity
        """
        if total_capacity is None or total_capacity < 0:
            raise BookingValidationError('Total capacity cannot be negative.')

        def attempt():
            facility = self.store.get_facility(facility_id)
            self._require_owner(facility, actor_id)
            reserved = self.store.reserved_quantity(facility)
            if total_capacity < reserved:
                raise BookingValidationError(
                    f'Total capacity cannot be lower than the {reserved} units already reserved.'
                )
            self.store.set_capacity(facility, total_capacity, total_capacity - reserved)
            logger.info(
                f"Facility capacity resized. Facility ID: {facility.pk}, "
                f"Total: {facility.total_capacity}, Available: {facility.available_capacity}"
            )
            return facility

        return self._run('resize_capacity', facility_id, attempt)

    def remove_facility(self, facility_id, actor_id):
        """
        Withdraw a facility.

        Facilities that any booking references are deactivated so their
        history survives; facilities never booked are deleted outright.

        Returns:
            str: 'deactivated' or 'deleted'
        """
        def attempt():
            facility = self.store.get_facility(facility_id)
            self._require_owner(facility, actor_id)
            if self.store.has_bookings(facility):
                self.store.deactivate(facility)
                outcome = 'deactivated'
            else:
                self.store.delete(facility)
                outcome = 'deleted'
            logger.info(f"Facility removed. Facility ID: {facility_id}, Outcome: {outcome}")
            return outcome

        return self._run('remove_facility', facility_id, attempt)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_bookings_for_user(self, user_id):
        """
        Bookings made by ``user_id`` across all facilities.

        Returns:
            list of (FacilitySummary, Booking)
        """
        results = []
        for booking in self.store.bookings_for_user(user_id):
            facility = booking.facility
            summary = FacilitySummary(
                id=facility.pk,
                name=facility.name,
                location=facility.location_summary(),
            )
            results.append((summary, booking))
        return results

    def list_bookings_for_owner(self, facility_id, owner_id):
        """All bookings at a facility, oldest first. Owner only."""
        facility = self.store.get_facility(facility_id)
        self._require_owner(facility, owner_id)
        return self.store.bookings_for_facility(facility)

    def reserved_quantity(self, facility_id):
        facility = self.store.get_facility(facility_id)
        return self.store.reserved_quantity(facility)
