# donations/serializers.py
from rest_framework import serializers

from .models import (
    BLOOD_GROUPS, DONATION_TYPES, DONOR_BLOOD_GROUPS, Appointment, BloodUnit,
    Camp, DonationHistory, Donor, EmergencyRequest, Hospital, Registration,
)


class DonorSerializer(serializers.ModelSerializer):
    class Meta:
        model = Donor
        fields = (
            'id', 'user', 'full_name', 'blood_group', 'sex', 'city', 'phone',
            'safety_status', 'safety_reason', 'created_at',
        )
        read_only_fields = ('user', 'safety_status', 'safety_reason', 'created_at')


class EligibilitySerializer(serializers.Serializer):
    eligible = serializers.BooleanField()
    reason = serializers.CharField(allow_null=True)
    next_eligible_date = serializers.DateField(allow_null=True)
    kind = serializers.CharField(allow_null=True)


class DonationHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = DonationHistory
        fields = '__all__'


class HospitalSerializer(serializers.ModelSerializer):
    class Meta:
        model = Hospital
        fields = '__all__'


class RegistrationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Registration
        fields = ('id', 'camp', 'donor', 'appointment', 'status', 'checked_in', 'checked_in_at', 'created_at')
        read_only_fields = fields


class CampSerializer(serializers.ModelSerializer):
    camp_status = serializers.SerializerMethodField()
    is_full = serializers.BooleanField(read_only=True)

    class Meta:
        model = Camp
        fields = (
            'id', 'name', 'location', 'district', 'nearest_hospital', 'date',
            'start_time', 'end_time', 'capacity', 'registration_count', 'is_full',
            'lat', 'lng', 'camp_status', 'created_at',
        )
        read_only_fields = ('registration_count', 'created_at')

    def get_camp_status(self, obj):
        return obj.status_at(self.context.get('now'))

    def validate_capacity(self, value):
        if value is not None and value < 1:
            raise serializers.ValidationError("Capacity must be at least 1 when set.")
        return value

    def validate(self, attrs):
        if attrs['end_time'] <= attrs['start_time']:
            raise serializers.ValidationError("Camp end time must be after start time.")
        return attrs


class DonorRefSerializer(serializers.Serializer):
    """Body of camp register / check-in calls. Donors may omit ``donor``."""
    donor = serializers.PrimaryKeyRelatedField(queryset=Donor.objects.all(), required=False)


class AppointmentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Appointment
        fields = (
            'id', 'donor', 'center_type', 'hospital', 'camp', 'center_name',
            'scheduled_at', 'donation_type', 'status', 'created_at', 'updated_at',
        )
        read_only_fields = fields


class BookingSerializer(serializers.Serializer):
    donor = serializers.PrimaryKeyRelatedField(queryset=Donor.objects.all(), required=False)
    center_type = serializers.ChoiceField(choices=Appointment.CENTER_TYPES)
    center_id = serializers.IntegerField(min_value=1)
    scheduled_at = serializers.DateTimeField()
    blood_group = serializers.ChoiceField(choices=DONOR_BLOOD_GROUPS, required=False)
    donation_type = serializers.ChoiceField(choices=DONATION_TYPES, default='WHOLE_BLOOD')

    def to_internal_value(self, data):
        if hasattr(data, 'get') and isinstance(data.get('center_type'), str):
            data = data.copy()
            data['center_type'] = data['center_type'].strip().upper()
        return super().to_internal_value(data)


class StatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Appointment.STATUS)
    blood_group = serializers.ChoiceField(choices=BLOOD_GROUPS, required=False)


class BloodUnitSerializer(serializers.ModelSerializer):
    class Meta:
        model = BloodUnit
        fields = '__all__'
        read_only_fields = [f.name for f in BloodUnit._meta.fields if f.name not in ('blood_group', 'quantity', 'expiry_date')]

    def validate_blood_group(self, value):
        valid = [b[0] for b in BLOOD_GROUPS]
        if value not in valid:
            raise serializers.ValidationError("Invalid blood group.")
        return value

    def validate_quantity(self, value):
        if value <= 0:
            raise serializers.ValidationError("Quantity must be greater than zero.")
        return value


class LabResultSerializer(serializers.Serializer):
    positive = serializers.BooleanField(required=False, allow_null=True, default=None)
    hiv = serializers.BooleanField(required=False, default=False)
    hepatitis = serializers.BooleanField(required=False, default=False)
    malaria = serializers.BooleanField(required=False, default=False)
    reason = serializers.CharField(required=False, allow_blank=True, default='')

    def validate(self, attrs):
        positive = attrs.get('positive')
        if positive is None:
            positive = attrs['hiv'] or attrs['hepatitis'] or attrs['malaria']
        if positive and not attrs['reason'].strip():
            raise serializers.ValidationError({'reason': "A reason is required for a positive result."})
        return attrs


class InventorySummarySerializer(serializers.Serializer):
    blood_group = serializers.CharField()
    total_units = serializers.IntegerField()


class EmergencyRequestSerializer(serializers.ModelSerializer):
    units_remaining = serializers.IntegerField(read_only=True)

    class Meta:
        model = EmergencyRequest
        fields = (
            'id', 'hospital', 'blood_group', 'urgency', 'units_requested',
            'units_fulfilled', 'units_remaining', 'status', 'created_at',
        )
        read_only_fields = ('units_fulfilled', 'status', 'created_at')

    def validate_units_requested(self, value):
        if value <= 0:
            raise serializers.ValidationError("Units must be greater than zero.")
        return value


class FulfillSerializer(serializers.Serializer):
    units = serializers.IntegerField(min_value=1)


class AppointmentFilterSerializer(serializers.Serializer):
    donor = serializers.IntegerField(required=False, min_value=1)
    status = serializers.ChoiceField(choices=Appointment.STATUS, required=False)


class InventoryFilterSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=BloodUnit.STATUS, required=False)
    blood_group = serializers.ChoiceField(choices=DONOR_BLOOD_GROUPS, required=False)
