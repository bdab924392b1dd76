"""
Persistence for facility aggregates.

``FacilityStore`` is the repository the booking ledger is written against.
``DjangoFacilityStore`` implements it on the ORM using optimistic
concurrency: every write is a compare-and-swap on ``Facility.version`` inside
a transaction, and a lost race raises ``StaleAggregate`` after the
transaction has been rolled back.
"""

from django.db import transaction
from django.db.models import F, Sum
from django.utils import timezone

from .exceptions import NotFound
from .models import Booking, Facility


class StaleAggregate(Exception):
    """The facility changed between read and write; nothing was persisted."""


class FacilityStore:
    """Repository interface for Facility aggregates and their bookings."""

    def get_facility(self, facility_id):
        raise NotImplementedError

    def get_booking(self, facility, booking_id):
        raise NotImplementedError

    def reserved_quantity(self, facility):
        raise NotImplementedError

    def add_booking(self, facility, booking):
        raise NotImplementedError

    def change_booking_status(self, facility, booking, new_status, restore_capacity):
        raise NotImplementedError

    def set_capacity(self, facility, total_capacity, available_capacity):
        raise NotImplementedError

    def deactivate(self, facility):
        raise NotImplementedError

    def delete(self, facility):
        raise NotImplementedError

    def has_bookings(self, facility):
        raise NotImplementedError

    def bookings_for_user(self, user_id):
        raise NotImplementedError

    def bookings_for_facility(self, facility):
        raise NotImplementedError


class DjangoFacilityStore(FacilityStore):
    """FacilityStore backed by the Django ORM."""

    def get_facility(self, facility_id):
        try:
            return Facility.objects.get(pk=facility_id)
        except (Facility.DoesNotExist, ValueError, TypeError):
            raise NotFound('Cold storage facility not found')

    def get_booking(self, facility, booking_id):
        try:
            return facility.bookings.get(pk=booking_id)
        except (Booking.DoesNotExist, ValueError, TypeError):
            raise NotFound('Booking not found')

    def reserved_quantity(self, facility):
        total = Booking.objects.filter(
            facility_id=facility.pk,
            status__in=Booking.OPEN_STATUSES,
        ).aggregate(total=Sum('quantity'))['total']
        return total or 0

    def _swap(self, facility, **changes):
        """
        Apply ``changes`` to the facility row if its version is still the one we read.

        Must be called inside ``transaction.atomic()``; raising StaleAggregate
        from there rolls back everything written in the same block.
        """
        updated = Facility.objects.filter(
            pk=facility.pk,
            version=facility.version,
        ).update(version=F('version') + 1, updated_at=timezone.now(), **changes)
        if updated != 1:
            raise StaleAggregate(f'Facility {facility.pk} changed since version {facility.version}')

    def add_booking(self, facility, booking):
        with transaction.atomic():
            self._swap(
                facility,
                available_capacity=F('available_capacity') - booking.quantity,
            )
            booking.facility = facility
            booking.save()
        facility.refresh_from_db()
        return booking

    def change_booking_status(self, facility, booking, new_status, restore_capacity):
        with transaction.atomic():
            changes = {}
            if restore_capacity:
                changes['available_capacity'] = F('available_capacity') + booking.quantity
            self._swap(facility, **changes)

            # The booking must still be in the status we validated against
            updated = Booking.objects.filter(
                pk=booking.pk,
                facility_id=facility.pk,
                status=booking.status,
            ).update(status=new_status, updated_at=timezone.now())
            if updated != 1:
                raise StaleAggregate(f'Booking {booking.pk} changed since it was read')
        booking.refresh_from_db()
        facility.refresh_from_db()
        return booking

    def set_capacity(self, facility, total_capacity, available_capacity):
        with transaction.atomic():
            self._swap(
                facility,
                total_capacity=total_capacity,
                available_capacity=available_capacity,
            )
        facility.refresh_from_db()
        return facility

    def deactivate(self, facility):
        with transaction.atomic():
            self._swap(facility, is_active=False)
        facility.refresh_from_db()
        return facility

    def delete(self, facility):
        with transaction.atomic():
            deleted, _ = Facility.objects.filter(
                pk=facility.pk,
                version=facility.version,
            ).delete()
            if not deleted:
                raise StaleAggregate(f'Facility {facility.pk} changed since version {facility.version}')

    def has_bookings(self, facility):
        return Booking.objects.filter(facility_id=facility.pk).exists()

    def bookings_for_user(self, user_id):
        return list(
            Booking.objects.filter(user_id=user_id)
            .select_related('facility')
            .order_by('facility_id', 'created_at', 'id')
        )

    def bookings_for_facility(self, facility):
        return list(facility.bookings.select_related('user').all())
