from decimal import Decimal

from django import forms
from django.forms.widgets import DateInput, Select, Textarea, TimeInput

from .models import (
    GENDER_CHOICES,
    PAYMENT_TYPE_CHOICES,
    ROOM_TYPE_CHOICES,
    Admission,
    Bed,
    Doctor,
    Payment,
)
from .services.beds import current_occupant

MIN_AMOUNT = Decimal('0.01')


# ----------------- ADMISSION -----------------
class AdmissionForm(forms.Form):
    """Admission details for both the create and the edit screen.

    A plain form rather than a ModelForm: the edit view diffs the cleaned
    data against the stored admission, so the instance must stay untouched
    until the service writes it.
    """
    uhid = forms.CharField(max_length=32, required=False, label='Existing UHID')

    name = forms.CharField(max_length=100)
    phone = forms.CharField(max_length=20)
    age = forms.IntegerField(min_value=0, max_value=150, required=False)
    gender = forms.ChoiceField(choices=[('', '---------')] + GENDER_CHOICES, required=False)
    address = forms.CharField(widget=Textarea(attrs={'rows': 2}), required=False)

    relative_name = forms.CharField(max_length=100, required=False)
    relative_phone = forms.CharField(max_length=20, required=False)
    relative_address = forms.CharField(widget=Textarea(attrs={'rows': 2}), required=False)

    admission_date = forms.DateField(widget=DateInput(attrs={'type': 'date'}, format='%Y-%m-%d'))
    admission_time = forms.CharField(max_length=10, required=False, widget=TimeInput(attrs={'type': 'time'}))
    admission_source = forms.ChoiceField(
        choices=[('', '---------')] + Admission.ADMISSION_SOURCE_CHOICES, required=False
    )
    admission_type = forms.ChoiceField(
        choices=[('', '---------')] + Admission.ADMISSION_TYPE_CHOICES, required=False
    )
    room_type = forms.ChoiceField(choices=ROOM_TYPE_CHOICES)
    bed = forms.ModelChoiceField(queryset=Bed.objects.all(), required=False, widget=Select)
    doctor = forms.ModelChoiceField(queryset=Doctor.objects.all(), required=False)
    refer_doctor = forms.CharField(max_length=100, required=False)

    deposit = forms.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False)
    payment_mode = forms.ChoiceField(choices=PAYMENT_TYPE_CHOICES, initial='cash')

    def __init__(self, *args, **kwargs):
        self.admission = kwargs.pop('admission', None)
        super().__init__(*args, **kwargs)
        self.fields['admission_date'].input_formats = ['%Y-%m-%d']
        if self.admission is not None:
            # the patient is fixed once admitted
            del self.fields['uhid']

    def clean_bed(self):
        bed = self.cleaned_data.get('bed')
        if bed is None:
            return bed
        current_bed_id = self.admission.bed_id if self.admission else None
        if bed.pk == current_bed_id:
            return bed
        occupant = current_occupant(bed, exclude=self.admission)
        if occupant is not None:
            raise forms.ValidationError(f"{bed.label} is occupied by IPD {occupant.pk}")
        if bed.status != Bed.AVAILABLE:
            raise forms.ValidationError(f"{bed.label} is {bed.status.lower()}")
        return bed

    def clean(self):
        cleaned = super().clean()
        bed = cleaned.get('bed')
        room_type = cleaned.get('room_type')
        if bed is not None and room_type and bed.room_type != room_type:
            self.add_error('bed', f"{bed.label} is not in {bed.get_room_type_display()}")
        if cleaned.get('deposit') is None:
            cleaned['deposit'] = Decimal('0.00')
        return cleaned

    def patient_data(self):
        data = {field: self.cleaned_data.get(field) for field in ('name', 'phone', 'age', 'gender', 'address')}
        data['uhid'] = self.cleaned_data.get('uhid', '')
        return data

    def admission_data(self):
        return {
            field: self.cleaned_data.get(field)
            for field in (
                'relative_name', 'relative_phone', 'relative_address',
                'admission_date', 'admission_time', 'admission_source', 'admission_type',
                'room_type', 'bed', 'doctor', 'refer_doctor',
            )
        }


class AdmissionEditForm(AdmissionForm):
    version = forms.IntegerField(widget=forms.HiddenInput)

    def edit_data(self):
        data = self.patient_data()
        data.pop('uhid', None)
        data.update(self.admission_data())
        data['deposit'] = self.cleaned_data['deposit']
        data['payment_mode'] = self.cleaned_data['payment_mode']
        return data


# ----------------- LEDGER -----------------
class ServiceChargeForm(forms.Form):
    service_name = forms.CharField(max_length=200)
    amount = forms.DecimalField(max_digits=10, decimal_places=2, min_value=MIN_AMOUNT)
    quantity = forms.IntegerField(min_value=1, initial=1)


ServiceChargeFormSet = forms.formset_factory(ServiceChargeForm, extra=3)


class ConsultantChargeForm(forms.Form):
    doctor = forms.ModelChoiceField(queryset=Doctor.objects.all(), required=False)
    is_custom_doctor = forms.BooleanField(required=False)
    custom_doctor_name = forms.CharField(max_length=100, required=False)
    visit_charge = forms.DecimalField(max_digits=10, decimal_places=2, min_value=MIN_AMOUNT)
    visit_times = forms.IntegerField(min_value=1, max_value=10, initial=1)

    def clean(self):
        cleaned = super().clean()
        if cleaned.get('is_custom_doctor'):
            name = (cleaned.get('custom_doctor_name') or '').strip()
            if not name:
                self.add_error('custom_doctor_name', 'Enter the doctor name')
        else:
            doctor = cleaned.get('doctor')
            if doctor is None:
                self.add_error('doctor', 'Select a doctor')
            name = doctor.name if doctor else ''
        cleaned['doctor_name'] = name
        return cleaned


class PaymentForm(forms.Form):
    amount = forms.DecimalField(max_digits=12, decimal_places=2, min_value=MIN_AMOUNT)
    payment_type = forms.ChoiceField(choices=PAYMENT_TYPE_CHOICES)
    type = forms.ChoiceField(choices=Payment.TYPE_CHOICES, initial=Payment.ADVANCE)
    amount_type = forms.ChoiceField(choices=Payment.AMOUNT_TYPE_CHOICES, initial='advance')
    through = forms.CharField(max_length=100, required=False)
    date = forms.DateField(required=False, widget=DateInput(attrs={'type': 'date'}, format='%Y-%m-%d'))
    send_whatsapp_notification = forms.BooleanField(required=False)


class DiscountForm(forms.Form):
    discount = forms.DecimalField(max_digits=12, decimal_places=2, min_value=0)


class DischargeForm(forms.Form):
    discharge_date = forms.DateTimeField(required=False)
    version = forms.IntegerField(required=False, widget=forms.HiddenInput)
