from django.contrib import admin

from .models import (
    Admission,
    AdmissionChange,
    Bed,
    BillingRecord,
    Doctor,
    Patient,
    Payment,
    SequenceCounter,
    ServiceCharge,
)
from .services.beds import current_occupant


class ServiceChargeInline(admin.TabularInline):
    model = ServiceCharge
    extra = 0
    can_delete = False
    readonly_fields = ['service_name', 'doctor_name', 'type', 'amount', 'created_at']

    def has_add_permission(self, request, obj=None):
        return False


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    can_delete = False
    readonly_fields = ['amount', 'payment_type', 'type', 'amount_type', 'date', 'through']

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(BillingRecord)
class BillingRecordAdmin(admin.ModelAdmin):
    # Ledger rows are written through the billing screen so the deposit stays in step
    inlines = [ServiceChargeInline, PaymentInline]
    list_display = ['admission', 'total_deposit', 'discount', 'payment_mode', 'version', 'updated_at']
    readonly_fields = ['admission', 'total_deposit', 'discount', 'version']


@admin.register(Bed)
class BedAdmin(admin.ModelAdmin):
    list_display = ['bed_number', 'room_type', 'bed_type', 'status', 'updated_at']
    list_filter = ['room_type', 'status']
    search_fields = ['bed_number']

    def get_readonly_fields(self, request, obj=None):
        # Occupancy of a held bed follows its admission
        if obj is not None and current_occupant(obj) is not None:
            return ['status']
        return []


@admin.register(Admission)
class AdmissionAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'patient', 'admit_date_key', 'room_type', 'bed', 'status', 'version']
    list_filter = ['status', 'room_type', 'admission_type']
    search_fields = ['name', 'phone', 'patient__uhid']
    readonly_fields = ['patient', 'admit_date_key', 'bed', 'status', 'version', 'last_modified_by']


@admin.register(Doctor)
class DoctorAdmin(admin.ModelAdmin):
    list_display = ['name', 'specialist', 'department', 'opd_charge']
    list_filter = ['department']


@admin.register(AdmissionChange)
class AdmissionChangeAdmin(admin.ModelAdmin):
    list_display = ['edited_at', 'patient_uhid', 'admit_date_key', 'change_type', 'outcome', 'edited_by']
    list_filter = ['change_type', 'outcome']
    search_fields = ['patient_uhid', 'patient_name']


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ['uhid', 'name', 'phone', 'age', 'gender']
    search_fields = ['uhid', 'name', 'phone']
    readonly_fields = ['uhid']


admin.site.register(SequenceCounter)
