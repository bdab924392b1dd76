import os
import sys
import django
import random
from decimal import Decimal
from datetime import timedelta
from django.utils import timezone
from faker import Faker

# Add project root to Python path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Set up Django environment
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'agrimarket.settings')
django.setup()

from marketplace.exceptions import LedgerError
from marketplace.ledger import BookingLedger
from marketplace.models import Booking, Facility, FacilityRating, User

fake = Faker('en_IN')
ledger = BookingLedger()

CROPS = ["Onion", "Potato", "Tomato", "Apple", "Grapes", "Banana", "Mango", "Carrot", "Cabbage"]

SERVICES = [
    ("Sorting", "Manual sorting by size", 50.0, "ton"),
    ("Grading", "Quality grading before storage", 75.0, "ton"),
    ("Packing", "Crates and gunny bags", 120.0, "ton"),
    ("Fumigation", "Pest control treatment", 200.0, "batch"),
]


def indian_phone():
    return f"+91 {random.randint(70000, 99999)} {random.randint(10000, 99999)}"


def create_users(num_farmers=10, num_owners=5):
    print(f"Creating {num_farmers} farmers and {num_owners} cold storage owners...")

    farmers = []
    owners = []

    for role, count, bucket in (('farmer', num_farmers, farmers), ('coldstorage', num_owners, owners)):
        for _ in range(count):
            email = fake.unique.email()
            username = email.split('@')[0]
            user = User.objects.create_user(
                username=username,
                email=email,
                password='password123',
                first_name=fake.first_name(),
                last_name=fake.last_name(),
                phone_number=indian_phone(),
                role=role
            )
            bucket.append(user)

    print(f"Created {len(farmers)} farmers and {len(owners)} cold storage owners.")
    return farmers, owners


def create_facilities(owners):
    print("Creating cold storage facilities...")
    facilities = []

    for owner in owners:
        # Each owner runs 1-3 facilities
        for _ in range(random.randint(1, 3)):
            city = fake.city()
            capacity = random.choice([100, 250, 500, 1000, 2000])
            services = [
                {'name': name, 'description': description, 'price': price, 'unit': unit}
                for name, description, price, unit in random.sample(SERVICES, random.randint(0, 3))
            ]
            facility = Facility.objects.create(
                owner=owner,
                name=f"{city} {random.choice(['Cold Chain', 'Cold Storage', 'Agri Cold Hub'])}",
                description=fake.paragraph(),
                address=fake.street_address(),
                city=city,
                state=fake.state(),
                pincode=fake.postcode(),
                latitude=float(fake.latitude()),
                longitude=float(fake.longitude()),
                total_capacity=capacity,
                available_capacity=capacity,
                temperature=random.choice([2.0, 4.0, 8.0, 12.0]),
                humidity=random.choice([85.0, 90.0, 95.0]),
                ventilation=random.choice([True, False]),
                monitoring=random.choice([True, False]),
                services=services,
                base_rate=Decimal(random.uniform(50.0, 500.0)).quantize(Decimal('0.01')),
                per_unit_per_day=Decimal(random.uniform(1.0, 10.0)).quantize(Decimal('0.01')),
                minimum_period=random.choice([1, 7, 15, 30]),
            )
            facilities.append(facility)

    print(f"Created {len(facilities)} facilities.")
    return facilities


def create_bookings(farmers, facilities):
    print("Creating bookings...")
    bookings = []
    rejected = 0

    statuses = ['pending', 'confirmed', 'active', 'completed', 'cancelled']

    for farmer in farmers:
        # Each farmer makes 0-3 bookings
        for _ in range(random.randint(0, 3)):
            facility = random.choice(facilities)
            start_date = timezone.now() + timedelta(days=random.randint(-60, 30))
            end_date = start_date + timedelta(days=random.randint(7, 90))

            try:
                booking = ledger.create_booking(
                    facility_id=facility.id,
                    requester_id=farmer.id,
                    crop=random.choice(CROPS),
                    quantity=random.randint(5, 150),
                    start_date=start_date,
                    end_date=end_date,
                    special_instructions=fake.sentence() if random.random() < 0.3 else '',
                )
            except LedgerError:
                rejected += 1
                continue

            status = random.choice(statuses)
            if status != Booking.STATUS_PENDING:
                booking = ledger.transition_booking_status(
                    facility.id, booking.id, status, facility.owner_id
                )
            bookings.append(booking)

    print(f"Created {len(bookings)} bookings ({rejected} rejected for capacity).")
    return bookings


def create_ratings(bookings):
    print("Creating ratings...")
    ratings = []
    rated = set()

    for booking in bookings:
        key = (booking.user_id, booking.facility_id)
        if booking.status != Booking.STATUS_COMPLETED or key in rated:
            continue
        # 70% chance of leaving a rating
        if random.random() < 0.7:
            rating = FacilityRating.objects.create(
                user_id=booking.user_id,
                facility_id=booking.facility_id,
                rating=random.randint(3, 5),
                comment=fake.paragraph()
            )
            rated.add(key)
            ratings.append(rating)

    print(f"Created {len(ratings)} ratings.")
    return ratings


def main():
    print("Starting database population...")

    farmers, owners = create_users(num_farmers=20, num_owners=8)
    facilities = create_facilities(owners)
    bookings = create_bookings(farmers, facilities)
    create_ratings(bookings)

    print("Database population completed successfully!")


if __name__ == '__main__':
    main()
