import decimal

import django.contrib.auth.models
import django.contrib.auth.validators
import django.core.validators
import django.db.models.deletion
import django.utils.timezone
import marketplace.validators
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('auth', '0012_alter_user_first_name_max_length'),
    ]

    operations = [
        migrations.CreateModel(
            name='User',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('password', models.CharField(max_length=128, verbose_name='password')),
                ('last_login', models.DateTimeField(blank=True, null=True, verbose_name='last login')),
                ('is_superuser', models.BooleanField(default=False, help_text='Designates that this user has all permissions without explicitly assigning them.', verbose_name='superuser status')),
                ('username', models.CharField(error_messages={'unique': 'A user with that username already exists.'}, help_text='Required. 150 characters or fewer. Letters, digits and @/./+/-/_ only.', max_length=150, unique=True, validators=[django.contrib.auth.validators.UnicodeUsernameValidator()], verbose_name='username')),
                ('first_name', models.CharField(blank=True, max_length=150, verbose_name='first name')),
                ('last_name', models.CharField(blank=True, max_length=150, verbose_name='last name')),
                ('is_staff', models.BooleanField(default=False, help_text='Designates whether the user can log into this admin site.', verbose_name='staff status')),
                ('is_active', models.BooleanField(default=True, help_text='Designates whether this user should be treated as active. Unselect this instead of deleting accounts.', verbose_name='active')),
                ('date_joined', models.DateTimeField(default=django.utils.timezone.now, verbose_name='date joined')),
                ('email', models.EmailField(error_messages={'unique': 'A user with that email already exists.'}, help_text='Required. Enter a valid email address.', max_length=254, unique=True, verbose_name='email address')),
                ('phone_number', models.CharField(blank=True, default='', help_text='Optional. Indian mobile number, with or without +91.', max_length=20, validators=[marketplace.validators.validate_phone_number], verbose_name='phone number')),
                ('role', models.CharField(choices=[('farmer', 'Farmer'), ('buyer', 'Buyer'), ('coldstorage', 'Cold Storage Owner'), ('transporter', 'Transporter'), ('fpo', 'Farmer Producer Organization'), ('admin', 'Administrator')], default='farmer', help_text='Marketplace role of the user.', max_length=20, verbose_name='role')),
                ('created_at', models.DateTimeField(auto_now_add=True, help_text='Timestamp when the account was created.', verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the account was last updated.', verbose_name='updated at')),
                ('groups', models.ManyToManyField(blank=True, help_text='The groups this user belongs to. A user will get all permissions granted to each of their groups.', related_name='user_set', related_query_name='user', to='auth.group', verbose_name='groups')),
                ('user_permissions', models.ManyToManyField(blank=True, help_text='Specific permissions for this user.', related_name='user_set', related_query_name='user', to='auth.permission', verbose_name='user permissions')),
            ],
            options={
                'verbose_name': 'user',
                'verbose_name_plural': 'users',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['email'], name='marketplace_email_7d1a4f_idx'),
                    models.Index(fields=['role'], name='marketplace_role_3c9e0b_idx'),
                ],
            },
            managers=[
                ('objects', django.contrib.auth.models.UserManager()),
            ],
        ),
        migrations.CreateModel(
            name='Facility',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(help_text='Name of the facility', max_length=200, verbose_name='name')),
                ('description', models.TextField(blank=True, default='', verbose_name='description')),
                ('address', models.CharField(blank=True, default='', max_length=300, verbose_name='address')),
                ('city', models.CharField(blank=True, default='', max_length=100, verbose_name='city')),
                ('state', models.CharField(blank=True, default='', max_length=100, verbose_name='state')),
                ('pincode', models.CharField(blank=True, default='', max_length=10, verbose_name='pincode')),
                ('latitude', models.FloatField(blank=True, null=True, verbose_name='latitude')),
                ('longitude', models.FloatField(blank=True, null=True, verbose_name='longitude')),
                ('total_capacity', models.PositiveIntegerField(help_text='Total storage capacity in tons', verbose_name='total capacity')),
                ('available_capacity', models.PositiveIntegerField(help_text='Capacity not reserved by open bookings', verbose_name='available capacity')),
                ('temperature', models.FloatField(blank=True, help_text='Storage temperature in degrees Celsius', null=True, verbose_name='temperature')),
                ('humidity', models.FloatField(blank=True, help_text='Relative humidity in percent', null=True, verbose_name='humidity')),
                ('ventilation', models.BooleanField(default=False, verbose_name='ventilation')),
                ('monitoring', models.BooleanField(default=False, verbose_name='monitoring')),
                ('services', models.JSONField(blank=True, default=list, help_text='Additional services: list of {name, description, price, unit}', verbose_name='services')),
                ('base_rate', models.DecimalField(decimal_places=2, default=decimal.Decimal('0.00'), max_digits=10, validators=[django.core.validators.MinValueValidator(decimal.Decimal('0.00'))], verbose_name='base rate')),
                ('per_unit_per_day', models.DecimalField(decimal_places=2, help_text='Price charged per ton per day', max_digits=10, validators=[django.core.validators.MinValueValidator(decimal.Decimal('0.00'))], verbose_name='rate per unit per day')),
                ('minimum_period', models.PositiveIntegerField(default=1, help_text='Advertised minimum storage period in days', verbose_name='minimum period')),
                ('rating_average', models.DecimalField(decimal_places=2, default=decimal.Decimal('0.00'), max_digits=3, validators=[django.core.validators.MinValueValidator(decimal.Decimal('0.00'), message='Rating cannot be negative.'), django.core.validators.MaxValueValidator(decimal.Decimal('5.00'), message='Rating cannot exceed 5.00.')], verbose_name='rating average')),
                ('rating_count', models.PositiveIntegerField(default=0, verbose_name='rating count')),
                ('images', models.JSONField(blank=True, default=list, verbose_name='images')),
                ('is_active', models.BooleanField(default=True, help_text='Inactive facilities are hidden and cannot be booked', verbose_name='is active')),
                ('version', models.PositiveIntegerField(default=0, editable=False, help_text='Incremented on every capacity or booking change', verbose_name='version')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('owner', models.ForeignKey(help_text='Cold-storage operator owning this facility', on_delete=django.db.models.deletion.CASCADE, related_name='facilities', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'facility',
                'verbose_name_plural': 'facilities',
                'ordering': ['-rating_average', '-created_at'],
                'indexes': [
                    models.Index(fields=['owner'], name='marketplace_owner_i_5b2e81_idx'),
                    models.Index(fields=['is_active'], name='marketplace_is_acti_0f6c2d_idx'),
                    models.Index(fields=['city'], name='marketplace_city_8a41c7_idx'),
                    models.Index(fields=['state'], name='marketplace_state_e29b53_idx'),
                    models.Index(fields=['rating_average'], name='marketplace_rating__4d7f90_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('available_capacity__gte', 0)), name='facility_available_non_negative'),
                    models.CheckConstraint(condition=models.Q(('available_capacity__lte', models.F('total_capacity'))), name='facility_available_lte_total'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Booking',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('crop', models.CharField(max_length=100, verbose_name='crop')),
                ('quantity', models.PositiveIntegerField(help_text='Reserved capacity in tons', verbose_name='quantity')),
                ('start_date', models.DateTimeField(verbose_name='start date')),
                ('end_date', models.DateTimeField(verbose_name='end date')),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('confirmed', 'Confirmed'), ('active', 'Active'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], default='pending', max_length=20, verbose_name='status')),
                ('cost', models.DecimalField(decimal_places=2, help_text='Total storage cost for the booked period', max_digits=14, verbose_name='cost')),
                ('special_instructions', models.TextField(blank=True, default='', verbose_name='special instructions')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('facility', models.ForeignKey(help_text='Facility holding the reserved capacity', on_delete=django.db.models.deletion.CASCADE, related_name='bookings', to='marketplace.facility')),
                ('user', models.ForeignKey(help_text='User who made the booking', on_delete=django.db.models.deletion.CASCADE, related_name='storage_bookings', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'booking',
                'verbose_name_plural': 'bookings',
                'ordering': ['created_at', 'id'],
                'indexes': [
                    models.Index(fields=['facility', 'status'], name='marketplace_facilit_9c3a12_idx'),
                    models.Index(fields=['user'], name='marketplace_user_id_61e0fb_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('quantity__gt', 0)), name='booking_quantity_positive'),
                    models.CheckConstraint(condition=models.Q(('end_date__gt', models.F('start_date'))), name='booking_end_after_start'),
                ],
            },
        ),
        migrations.CreateModel(
            name='FacilityRating',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('rating', models.PositiveSmallIntegerField(help_text='Rating from 1 to 5 stars', validators=[django.core.validators.MinValueValidator(1, message='Rating must be at least 1.'), django.core.validators.MaxValueValidator(5, message='Rating must be at most 5.')], verbose_name='rating')),
                ('comment', models.TextField(blank=True, default='', verbose_name='comment')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('facility', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='ratings', to='marketplace.facility')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='facility_ratings', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'facility rating',
                'verbose_name_plural': 'facility ratings',
                'ordering': ['-created_at'],
                'constraints': [
                    models.UniqueConstraint(fields=('user', 'facility'), name='one_rating_per_user_facility'),
                ],
            },
        ),
    ]
