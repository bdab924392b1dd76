"""
URL configuration for the agrimarket project.

All API endpoints live under ``/api/``; cold-storage routes are grouped
under ``/api/coldstorage/``.
"""
from django.contrib import admin
from django.urls import path
from rest_framework_simplejwt.views import TokenRefreshView

from marketplace.views import (
    BookingCreateView,
    BookingStatusUpdateView,
    EmailTokenObtainPairView,
    FacilityBookingsView,
    FacilityDetailView,
    FacilityListCreateView,
    FacilityRatingView,
    OwnerFacilitiesView,
    UserBookingsView,
)


urlpatterns = [
    path('admin/', admin.site.urls),

    # JWT Authentication endpoints
    path('api/token/', EmailTokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('api/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),

    # Cold-storage facility endpoints
    path('api/coldstorage/', FacilityListCreateView.as_view(), name='coldstorage_list'),
    path('api/coldstorage/owner/my-facilities/', OwnerFacilitiesView.as_view(), name='coldstorage_owner_facilities'),
    path('api/coldstorage/user/bookings/', UserBookingsView.as_view(), name='coldstorage_user_bookings'),
    path('api/coldstorage/<int:pk>/', FacilityDetailView.as_view(), name='coldstorage_detail'),

    # Booking endpoints
    path('api/coldstorage/<int:pk>/book/', BookingCreateView.as_view(), name='coldstorage_book'),
    path('api/coldstorage/<int:pk>/bookings/', FacilityBookingsView.as_view(), name='coldstorage_bookings'),
    path(
        'api/coldstorage/<int:pk>/booking/<int:booking_id>/',
        BookingStatusUpdateView.as_view(),
        name='coldstorage_booking_status'
    ),

    # Rating endpoints
    path('api/coldstorage/<int:pk>/rate/', FacilityRatingView.as_view(), name='coldstorage_rate'),
]
