# donations/urls.py
from django.urls import include, path
from rest_framework import routers

from . import views

# DRF Router for API
router = routers.DefaultRouter()
router.register(r'donors', views.DonorViewSet, basename='donors')
router.register(r'hospitals', views.HospitalViewSet, basename='hospitals')
router.register(r'camps', views.CampViewSet, basename='camps')
router.register(r'appointments', views.AppointmentViewSet, basename='appointments')
router.register(r'inventory', views.BloodUnitViewSet, basename='inventory')
router.register(r'emergency-requests', views.EmergencyRequestViewSet, basename='emergency-requests')

urlpatterns = [
    path('api/', include(router.urls)),
]
