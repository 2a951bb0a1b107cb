import uuid
from decimal import Decimal

from django.core.serializers.json import DjangoJSONEncoder
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone


GENDER_CHOICES = [
    ('male', 'Male'),
    ('female', 'Female'),
    ('other', 'Other'),
]

ROOM_TYPE_CHOICES = [
    ('casualty', 'Casualty'),
    ('icu', 'ICU'),
    ('suit', 'Suite'),
    ('female', 'Female Ward'),
    ('delux', 'Delux'),
    ('jade', 'Jade'),
    ('citrine', 'Citrine'),
    ('male', 'Male Ward'),
    ('nicu', 'NICU'),
]

PAYMENT_TYPE_CHOICES = [
    ('cash', 'Cash'),
    ('online', 'Online'),
    ('card', 'Card'),
]


# ==============================
# PATIENTS & DOCTORS
# ==============================

class Patient(models.Model):
    uhid = models.CharField(max_length=32, unique=True)
    name = models.CharField(max_length=100)
    phone = models.CharField(max_length=20)
    age = models.PositiveIntegerField(null=True, blank=True)
    gender = models.CharField(max_length=10, choices=GENDER_CHOICES, blank=True)
    address = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.uhid})"


class Doctor(models.Model):
    DEPARTMENT_CHOICES = [
        ('OPD', 'OPD'),
        ('IPD', 'IPD'),
        ('Both', 'Both'),
    ]

    name = models.CharField(max_length=100)
    specialist = models.CharField(max_length=100, blank=True)
    department = models.CharField(max_length=10, choices=DEPARTMENT_CHOICES, default='Both')
    opd_charge = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    # room type key -> visit charge
    ipd_charges = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return f"Dr. {self.name}"

    def visit_charge_for(self, room_type):
        """Default consultant visit charge for a patient in ``room_type``."""
        ipd_charge = Decimal('0.00')
        if room_type and self.ipd_charges.get(room_type):
            ipd_charge = Decimal(str(self.ipd_charges[room_type]))

        if self.department == 'OPD':
            return self.opd_charge
        if self.department == 'IPD':
            return ipd_charge
        return ipd_charge or self.opd_charge


# ==============================
# BED REGISTRY
# ==============================

class Bed(models.Model):
    AVAILABLE = 'Available'
    OCCUPIED = 'Occupied'
    MAINTENANCE = 'Maintenance'
    RESERVED = 'Reserved'

    STATUS_CHOICES = [
        (AVAILABLE, 'Available'),
        (OCCUPIED, 'Occupied'),
        (MAINTENANCE, 'Maintenance'),
        (RESERVED, 'Reserved'),
    ]

    room_type = models.CharField(max_length=30, choices=ROOM_TYPE_CHOICES, db_index=True)
    bed_number = models.CharField(max_length=20)
    bed_type = models.CharField(max_length=50, blank=True)
    # Derived from the active admission pointing at this bed
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=AVAILABLE)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ('room_type', 'bed_number')
        ordering = ['room_type', 'bed_number']

    def __str__(self):
        return f"Bed {self.bed_number} ({self.get_room_type_display()})"

    @property
    def label(self):
        return f"Bed {self.bed_number}"


# ==============================
# ADMISSIONS
# ==============================

class Admission(models.Model):
    ACTIVE = 'active'
    DISCHARGED = 'discharged'

    STATUS_CHOICES = [
        (ACTIVE, 'Active'),
        (DISCHARGED, 'Discharged'),
    ]

    ADMISSION_SOURCE_CHOICES = [
        ('opd', 'OPD'),
        ('casualty', 'Casualty'),
        ('referral', 'Referral'),
        ('ipd', 'IPD'),
    ]

    ADMISSION_TYPE_CHOICES = [
        ('general', 'General'),
        ('surgery', 'Surgery'),
        ('accident_emergency', 'Accident/Emergency'),
        ('day_observation', 'Day Observation'),
    ]

    patient = models.ForeignKey(Patient, on_delete=models.PROTECT, related_name='admissions')
    # Calendar day the admission was filed under; never changes after create
    admit_date_key = models.CharField(max_length=10, db_index=True)

    # Point-in-time copies of the patient's details
    name = models.CharField(max_length=100)
    phone = models.CharField(max_length=20)
    age = models.PositiveIntegerField(null=True, blank=True)
    gender = models.CharField(max_length=10, choices=GENDER_CHOICES, blank=True)
    address = models.TextField(blank=True)

    relative_name = models.CharField(max_length=100, blank=True)
    relative_phone = models.CharField(max_length=20, blank=True)
    relative_address = models.TextField(blank=True)

    admission_date = models.DateField()
    admission_time = models.CharField(max_length=10, blank=True)
    admission_source = models.CharField(max_length=20, choices=ADMISSION_SOURCE_CHOICES, blank=True)
    admission_type = models.CharField(max_length=30, choices=ADMISSION_TYPE_CHOICES, blank=True)
    room_type = models.CharField(max_length=30, choices=ROOM_TYPE_CHOICES, blank=True)
    bed = models.ForeignKey(Bed, on_delete=models.PROTECT, null=True, blank=True, related_name='admissions')
    doctor = models.ForeignKey(Doctor, on_delete=models.SET_NULL, null=True, blank=True, related_name='admissions')
    refer_doctor = models.CharField(max_length=100, blank=True)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=ACTIVE)
    discharge_date = models.DateTimeField(null=True, blank=True)

    version = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    last_modified_by = models.CharField(max_length=150, blank=True)

    class Meta:
        ordering = ['-admission_date', '-created_at']
        indexes = [
            models.Index(fields=['admit_date_key', 'patient'], name='ipd_admission_datekey_idx'),
            models.Index(fields=['bed', 'status'], name='ipd_admission_bed_status_idx'),
        ]

    def __str__(self):
        return f"IPD {self.pk} - {self.name} ({self.admit_date_key})"

    @property
    def is_active(self):
        return self.status == self.ACTIVE

    @property
    def bed_label(self):
        if self.bed is None:
            return "Unknown Bed"
        return self.bed.label

    def length_of_stay(self):
        from .utils.billing import length_of_stay

        return length_of_stay(self.admission_date, self.discharge_date)


# ==============================
# BILLING LEDGER
# ==============================

class BillingRecord(models.Model):
    admission = models.OneToOneField(Admission, on_delete=models.CASCADE, related_name='billing')
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    # Cache of advances minus refunds, moved together with every payment write
    total_deposit = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    payment_mode = models.CharField(max_length=20, choices=PAYMENT_TYPE_CHOICES, blank=True)
    version = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Billing for {self.admission}"

    def summary(self):
        from .utils.billing import compute_summary

        return compute_summary(self.services.all(), self.payments.all(), self.discount)


class ServiceCharge(models.Model):
    SERVICE = 'service'
    DOCTOR_VISIT = 'doctorvisit'

    TYPE_CHOICES = [
        (SERVICE, 'Hospital Service'),
        (DOCTOR_VISIT, 'Consultant Charge'),
    ]

    billing = models.ForeignKey(BillingRecord, on_delete=models.CASCADE, related_name='services')
    service_name = models.CharField(max_length=200)
    doctor_name = models.CharField(max_length=100, blank=True)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default=SERVICE)
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-created_at', '-id']

    def __str__(self):
        return f"{self.service_name} - ₹{self.amount}"


class Payment(models.Model):
    ADVANCE = 'advance'
    REFUND = 'refund'

    TYPE_CHOICES = [
        (ADVANCE, 'Advance'),
        (REFUND, 'Refund'),
    ]

    AMOUNT_TYPE_CHOICES = [
        ('advance', 'Advance'),
        ('deposit', 'Deposit'),
        ('settlement', 'Settlement'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    billing = models.ForeignKey(BillingRecord, on_delete=models.CASCADE, related_name='payments')
    amount = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal('0.00'))])
    payment_type = models.CharField(max_length=20, choices=PAYMENT_TYPE_CHOICES)
    type = models.CharField(max_length=10, choices=TYPE_CHOICES, default=ADVANCE)
    amount_type = models.CharField(max_length=20, choices=AMOUNT_TYPE_CHOICES, default='advance')
    date = models.DateTimeField(default=timezone.now)
    through = models.CharField(max_length=100, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-date']

    def __str__(self):
        return f"{self.get_type_display()} ₹{self.amount} ({self.payment_type})"

    @property
    def signed_amount(self):
        return self.amount if self.type == self.ADVANCE else -self.amount


# ==============================
# UHID COUNTER & CHANGE LOG
# ==============================

class SequenceCounter(models.Model):
    key = models.CharField(max_length=100, unique=True)
    value = models.PositiveBigIntegerField(default=0)

    def __str__(self):
        return f"{self.key} = {self.value}"


class AdmissionChange(models.Model):
    APPLIED = 'applied'
    FAILED = 'failed'
    CONFLICT = 'conflict'

    OUTCOME_CHOICES = [
        (APPLIED, 'Applied'),
        (FAILED, 'Failed'),
        (CONFLICT, 'Conflict'),
    ]

    CHANGE_TYPES = [
        ('edit', 'Edit'),
        ('discharge', 'Discharge'),
    ]

    admission = models.ForeignKey(Admission, on_delete=models.SET_NULL, null=True, related_name='changes')
    patient_uhid = models.CharField(max_length=32)
    admit_date_key = models.CharField(max_length=10)
    patient_name = models.CharField(max_length=100, blank=True)
    change_type = models.CharField(max_length=20, choices=CHANGE_TYPES, default='edit')
    # [{"field": ..., "oldValue": ..., "newValue": ...}, ...]
    changes = models.JSONField(default=list, encoder=DjangoJSONEncoder)
    outcome = models.CharField(max_length=20, choices=OUTCOME_CHOICES, default=APPLIED)
    detail = models.TextField(blank=True)
    edited_by = models.CharField(max_length=150, blank=True)
    edited_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-edited_at', '-id']

    def __str__(self):
        return f"{self.change_type} of {self.patient_uhid} by {self.edited_by or 'unknown'}"
