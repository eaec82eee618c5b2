# donations/views.py
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError as BadRequest
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response

from . import appointments, fulfillment, safety, slots
from .eligibility import evaluate as evaluate_eligibility
from .models import Camp, DonationHistory, Donor, Hospital
from .permissions import IsStaffOrReadOnly
from .serializers import (
    AppointmentFilterSerializer, AppointmentSerializer, BloodUnitSerializer, BookingSerializer,
    CampSerializer, DonationHistorySerializer, DonorRefSerializer,
    DonorSerializer, EligibilitySerializer, EmergencyRequestSerializer,
    FulfillSerializer, HospitalSerializer, InventoryFilterSerializer, InventorySummarySerializer,
    LabResultSerializer, RegistrationSerializer, StatusUpdateSerializer,
)


def acting_donor(request, donor=None):
    """The donor a call is about: the explicit one for staff, otherwise the caller's own profile."""
    if donor is not None:
        return donor
    profile = getattr(request.user, 'donor_profile', None)
    if profile is None:
        raise BadRequest({'donor': ["This field is required."]})
    return profile


# ---------- Donors ----------

class DonorViewSet(mixins.ListModelMixin,
                   mixins.RetrieveModelMixin,
                   mixins.CreateModelMixin,
                   viewsets.GenericViewSet):
    queryset = Donor.objects.all()
    serializer_class = DonorSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        user = self.request.user
        if user.is_staff:
            return Donor.objects.all()
        return Donor.objects.filter(user=user)

    def get_permissions(self):
        if self.action == 'create':
            return [IsAdminUser()]
        return super().get_permissions()

    @action(detail=False, methods=['get'])
    def me(self, request):
        donor = acting_donor(request)
        return Response(DonorSerializer(donor).data)

    @action(detail=True, methods=['get'])
    def eligibility(self, request, pk=None):
        donor = self.get_object()
        verdict = evaluate_eligibility(donor)
        return Response(EligibilitySerializer(verdict.as_dict()).data)

    @action(detail=True, methods=['get'])
    def history(self, request, pk=None):
        donor = self.get_object()
        history = DonationHistory.objects.filter(donor=donor)
        return Response(DonationHistorySerializer(history, many=True).data)


class HospitalViewSet(viewsets.ModelViewSet):
    queryset = Hospital.objects.all()
    serializer_class = HospitalSerializer
    permission_classes = [IsStaffOrReadOnly]


# ---------- Appointments ----------

class AppointmentViewSet(mixins.ListModelMixin,
                         mixins.RetrieveModelMixin,
                         viewsets.GenericViewSet):
    serializer_class = AppointmentSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        filters = AppointmentFilterSerializer(data=self.request.query_params)
        filters.is_valid(raise_exception=True)
        params = filters.validated_data
        return appointments.appointments_for(
            self.request.user, donor_id=params.get('donor'), status=params.get('status'),
        )

    def create(self, request):
        serializer = BookingSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        donor = acting_donor(request, data.get('donor'))
        appointment = appointments.book_appointment(
            donor.pk,
            data['center_type'],
            data['center_id'],
            data['scheduled_at'],
            request.user,
            blood_group=data.get('blood_group'),
            donation_type=data['donation_type'],
        )
        return Response(AppointmentSerializer(appointment).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['put', 'post'])
    def cancel(self, request, pk=None):
        appointment = appointments.cancel(pk, request.user)
        return Response(AppointmentSerializer(appointment).data)

    @action(detail=True, methods=['put'], url_path='status')
    def set_status(self, request, pk=None):
        serializer = StatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        appointment = appointments.transition(
            pk, data['status'], request.user, blood_group=data.get('blood_group'),
        )
        return Response(AppointmentSerializer(appointment).data)


# ---------- Camps ----------

class CampViewSet(mixins.ListModelMixin,
                  mixins.RetrieveModelMixin,
                  mixins.CreateModelMixin,
                  mixins.DestroyModelMixin,
                  viewsets.GenericViewSet):
    queryset = Camp.objects.all()
    serializer_class = CampSerializer
    permission_classes = [IsAuthenticated]

    def get_permissions(self):
        if self.action in ('create', 'destroy', 'check_in'):
            return [IsAdminUser()]
        return super().get_permissions()

    def perform_create(self, serializer):
        serializer.instance = slots.create_camp(self.request.user, **serializer.validated_data)

    def destroy(self, request, pk=None):
        slots.delete_camp(pk, request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)

    def _donor_from_body(self, request):
        serializer = DonorRefSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return acting_donor(request, serializer.validated_data.get('donor'))

    @action(detail=True, methods=['post'])
    def register(self, request, pk=None):
        donor = self._donor_from_body(request)
        registration = slots.register_for_camp(pk, donor.pk, request.user)
        return Response(RegistrationSerializer(registration).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def unregister(self, request, pk=None):
        donor = self._donor_from_body(request)
        registration = slots.cancel_registration(pk, donor.pk, request.user)
        return Response(RegistrationSerializer(registration).data)

    @action(detail=True, methods=['post'], url_path='check-in')
    def check_in(self, request, pk=None):
        serializer = DonorRefSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        donor = serializer.validated_data.get('donor')
        if donor is None:
            raise BadRequest({'donor': ["This field is required."]})
        registration = slots.check_in(pk, donor.pk, request.user)
        return Response(RegistrationSerializer(registration).data)

    @action(detail=True, methods=['get'])
    def registrations(self, request, pk=None):
        camp = self.get_object()
        qs = camp.registrations.all()
        if not request.user.is_staff:
            qs = qs.filter(donor__user=request.user)
        return Response(RegistrationSerializer(qs, many=True).data)


# ---------- Inventory / lab ----------

class BloodUnitViewSet(mixins.ListModelMixin,
                       mixins.RetrieveModelMixin,
                       mixins.CreateModelMixin,
                       viewsets.GenericViewSet):
    serializer_class = BloodUnitSerializer
    permission_classes = [IsAdminUser]

    def get_queryset(self):
        filters = InventoryFilterSerializer(data=self.request.query_params)
        filters.is_valid(raise_exception=True)
        params = filters.validated_data
        return safety.inventory(status=params.get('status'), blood_group=params.get('blood_group'))

    def perform_create(self, serializer):
        data = serializer.validated_data
        serializer.instance = safety.add_unit(
            data['blood_group'], data['expiry_date'], self.request.user,
            quantity=data.get('quantity', 1),
        )

    @action(detail=False, methods=['get'])
    def pending(self, request):
        return Response(BloodUnitSerializer(safety.pending_units(), many=True).data)

    @action(detail=False, methods=['get'], permission_classes=[IsAuthenticated])
    def summary(self, request):
        return Response(InventorySummarySerializer(safety.available_summary(), many=True).data)

    @action(detail=True, methods=['put'])
    def test(self, request, pk=None):
        serializer = LabResultSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        unit = safety.record_test_result(pk, request.user, **serializer.validated_data)
        return Response(BloodUnitSerializer(unit).data)


# ---------- Emergency requests ----------

class EmergencyRequestViewSet(mixins.ListModelMixin,
                              mixins.RetrieveModelMixin,
                              mixins.CreateModelMixin,
                              viewsets.GenericViewSet):
    serializer_class = EmergencyRequestSerializer
    permission_classes = [IsStaffOrReadOnly]

    def get_queryset(self):
        if self.request.query_params.get('active') in ('1', 'true', 'True'):
            return fulfillment.active_requests()
        return fulfillment.all_requests()

    def perform_create(self, serializer):
        data = serializer.validated_data
        serializer.instance = fulfillment.create_request(
            data['hospital'], data['blood_group'], data['units_requested'],
            urgency=data.get('urgency', 'CRITICAL'),
        )

    @action(detail=True, methods=['put'])
    def fulfill(self, request, pk=None):
        serializer = FulfillSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        updated = fulfillment.fulfill(pk, serializer.validated_data['units'], request.user)
        return Response(EmergencyRequestSerializer(updated).data)
