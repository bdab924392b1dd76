"""
Django signals for automatic facility rating recalculation.

Receivers in this module keep ``Facility.rating_average`` and
``Facility.rating_count`` in sync with the FacilityRating rows whenever a
rating is created, updated or deleted.
"""

import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Avg, Count
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver

from .models import Facility, FacilityRating

logger = logging.getLogger(__name__)


def compute_rating_aggregate(facility_id):
    """
    Average and count of all ratings for a facility.

    Returns:
        tuple: (Decimal average rounded to 2 places, int count)
    """
    stats = FacilityRating.objects.filter(facility_id=facility_id).aggregate(
        avg=Avg('rating'),
        total=Count('id'),
    )
    if stats['avg'] is None:
        return Decimal('0.00'), 0
    return Decimal(str(stats['avg'])).quantize(Decimal('0.01')), stats['total']


def refresh_facility_rating(facility_id):
    """
    Recompute and store the rating aggregate of one facility.

    Written as a column update so the capacity counter and version, which
    only the booking ledger may change, are left untouched.
    """
    average, count = compute_rating_aggregate(facility_id)
    Facility.objects.filter(pk=facility_id).update(
        rating_average=average,
        rating_count=count,
    )
    return average, count


@receiver(post_save, sender=FacilityRating)
def update_rating_on_save(sender, instance, created, **kwargs):
    """
    Refresh the facility aggregate after a rating is created or edited.

    Runs inside the same transaction as the rating save, so a failure here
    rolls the rating back too.
    """
    with transaction.atomic():
        average, count = refresh_facility_rating(instance.facility_id)

    logger.info(
        f"Facility rating {'added' if created else 'updated'}. "
        f"Facility ID: {instance.facility_id}, Average: {average}, Count: {count}"
    )


@receiver(post_delete, sender=FacilityRating)
def update_rating_on_delete(sender, instance, **kwargs):
    """Refresh the facility aggregate after a rating is removed."""
    with transaction.atomic():
        average, count = refresh_facility_rating(instance.facility_id)

    logger.info(
        f"Facility rating removed. "
        f"Facility ID: {instance.facility_id}, Average: {average}, Count: {count}"
    )
