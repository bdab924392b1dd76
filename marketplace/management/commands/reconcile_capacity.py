# Reconcile Capacity Management Command
import logging

from django.core.management.base import BaseCommand, CommandError

from marketplace.exceptions import LedgerError
from marketplace.models import Facility
from marketplace.store import DjangoFacilityStore, StaleAggregate

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = (
        'Recomputes available capacity from open bookings and repairs facilities '
        'whose counter has drifted.'
    )

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report drift without saving changes to the database.',
        )
        parser.add_argument(
            '--facility',
            type=int,
            help='Only reconcile the facility with this ID.',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        facility_id = options.get('facility')
        store = DjangoFacilityStore()

        facilities = Facility.objects.all().order_by('id')
        if facility_id is not None:
            facilities = facilities.filter(pk=facility_id)
            if not facilities.exists():
                raise CommandError(f'Facility {facility_id} does not exist.')

        self.stdout.write('Reconciling facility capacity...')
        checked = 0
        drifted = 0

        for facility in facilities.iterator():
            checked += 1
            reserved = store.reserved_quantity(facility)
            expected = facility.total_capacity - reserved
            if facility.available_capacity == expected:
                continue

            drifted += 1
            if expected < 0:
                self.stdout.write(self.style.ERROR(
                    f'  Facility {facility.id} ({facility.name}): {reserved} units reserved '
                    f'but total capacity is {facility.total_capacity}; fix manually.'
                ))
                continue

            prefix = '[DRY-RUN] ' if dry_run else ''
            self.stdout.write(
                f'  {prefix}Facility {facility.id} ({facility.name}): '
                f'Available {facility.available_capacity} -> {expected}'
            )
            if dry_run:
                continue

            try:
                store.set_capacity(facility, facility.total_capacity, expected)
            except (StaleAggregate, LedgerError) as e:
                self.stdout.write(self.style.WARNING(
                    f'  Facility {facility.id} changed while reconciling, skipped: {e}'
                ))
                continue

            logger.warning(
                f"Capacity drift repaired. Facility ID: {facility.id}, "
                f"Reserved: {reserved}, Available: {expected}"
            )

        self.stdout.write(f'Checked {checked} facilities, {drifted} drifted.')

        if dry_run:
            self.stdout.write(self.style.SUCCESS('Dry run completed. No changes saved.'))
        else:
            self.stdout.write(self.style.SUCCESS('Reconciliation completed successfully.'))
