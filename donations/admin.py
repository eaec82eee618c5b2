from django.contrib import admin

from .models import (
    Appointment, BloodUnit, Camp, DonationHistory, Donor, EmergencyRequest,
    Hospital, Registration,
)


@admin.register(Donor)
class DonorAdmin(admin.ModelAdmin):
    list_display = ('full_name', 'blood_group', 'sex', 'city', 'safety_status')
    list_filter = ('blood_group', 'safety_status')
    # Deferral happens through lab results only.
    readonly_fields = ('safety_status', 'safety_reason')


class RegistrationInline(admin.TabularInline):
    model = Registration
    extra = 0
    readonly_fields = ('donor', 'appointment', 'status', 'created_at')


@admin.register(Camp)
class CampAdmin(admin.ModelAdmin):
    list_display = ('name', 'date', 'start_time', 'end_time', 'capacity', 'registration_count')
    inlines = [RegistrationInline]


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ('donor', 'center_type', 'center_name', 'scheduled_at', 'status')
    list_filter = ('status', 'center_type')
    readonly_fields = ('status',)


@admin.register(BloodUnit)
class BloodUnitAdmin(admin.ModelAdmin):
    list_display = ('blood_group', 'quantity', 'expiry_date', 'test_status', 'safety_flag', 'status')
    list_filter = ('status', 'test_status', 'blood_group')
    readonly_fields = ('test_status', 'safety_flag', 'status', 'tested_at', 'tested_by')


@admin.register(EmergencyRequest)
class EmergencyRequestAdmin(admin.ModelAdmin):
    list_display = ('hospital', 'blood_group', 'urgency', 'units_requested', 'units_fulfilled', 'status')
    list_filter = ('status', 'urgency')
    readonly_fields = ('units_fulfilled', 'status')


admin.site.register(Hospital)
admin.site.register(DonationHistory)
