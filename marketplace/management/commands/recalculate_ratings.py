# Recalculate Ratings Management Command
from decimal import Decimal
from django.core.management.base import BaseCommand, CommandError
from django.db.models import Avg, Count

from marketplace.models import Facility, FacilityRating


class Command(BaseCommand):
    help = 'Recalculates facility rating aggregates from the stored ratings.'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Run the command without saving changes to the database.',
        )
        parser.add_argument(
            '--batch-size',
            type=int,
            default=1000,
            help='Batch size for bulk processing.',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        batch_size = options['batch_size']

        if batch_size < 1:
            raise CommandError('--batch-size must be a positive integer.')

        self.stdout.write('Recalculating facility ratings...')

        stats_by_facility = {
            row['facility_id']: row
            for row in FacilityRating.objects.values('facility_id').annotate(
                avg_rating=Avg('rating'),
                total=Count('id'),
            )
        }

        updates = []
        count = 0
        changed = 0

        for facility in Facility.objects.all().iterator(chunk_size=batch_size):
            stats = stats_by_facility.get(facility.id)
            if stats is None:
                new_avg = Decimal('0.00')
                new_total = 0
            else:
                new_avg = Decimal(str(stats['avg_rating'])).quantize(Decimal('0.01'))
                new_total = stats['total']

            if facility.rating_average != new_avg or facility.rating_count != new_total:
                changed += 1
                if dry_run:
                    self.stdout.write(
                        f'  [DRY-RUN] Facility {facility.id} ({facility.name}): '
                        f'Rating {facility.rating_average} -> {new_avg}, '
                        f'Count {facility.rating_count} -> {new_total}'
                    )
                facility.rating_average = new_avg
                facility.rating_count = new_total
                updates.append(facility)

            if len(updates) >= batch_size:
                if not dry_run:
                    Facility.objects.bulk_update(updates, ['rating_average', 'rating_count'])
                updates = []

            count += 1
            if count % 100 == 0:
                self.stdout.write(f'Processed {count} facilities...')

        if updates and not dry_run:
            Facility.objects.bulk_update(updates, ['rating_average', 'rating_count'])

        self.stdout.write(f'Processed {count} facilities total, {changed} out of date.')

        if dry_run:
            self.stdout.write(self.style.SUCCESS('Dry run completed. No changes saved.'))
        else:
            self.stdout.write(self.style.SUCCESS('Recalculation completed successfully.'))
