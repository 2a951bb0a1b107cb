import logging
from io import BytesIO

from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.db import DatabaseError
from django.db.models import Q
from django.http import HttpResponse, JsonResponse
from django.shortcuts import get_object_or_404, redirect, render
from django.template.loader import get_template
from django.utils import timezone
from xhtml2pdf import pisa

from .exceptions import IPDError
from .forms import (
    AdmissionEditForm,
    AdmissionForm,
    ConsultantChargeForm,
    DiscountForm,
    DischargeForm,
    PaymentForm,
    ServiceChargeForm,
    ServiceChargeFormSet,
)
from .models import ROOM_TYPE_CHOICES, Admission, AdmissionChange, Bed, BillingRecord, Doctor
from .services import admissions, beds, ledger
from .utils.billing import group_consultant_charges, group_services

logger = logging.getLogger(__name__)

WRITE_ERRORS = (IPDError, DatabaseError)


def _editor(request):
    return request.user.email or request.user.get_username()


def _billing_for(admission_id):
    admission = get_object_or_404(Admission.objects.select_related("patient", "bed", "doctor"), pk=admission_id)
    billing, _ = BillingRecord.objects.get_or_create(admission=admission)
    return admission, billing


def _form_errors(request, form):
    for field, errors in form.errors.items():
        label = "" if field == "__all__" else f"{field}: "
        for error in errors:
            messages.error(request, f"{label}{error}")


def _ledger_context(admission, billing):
    services = list(billing.services.all())
    payments = list(billing.payments.all())
    return {
        "admission": admission,
        "billing": billing,
        "summary": billing.summary(),
        "service_groups": group_services(services),
        "consultant_groups": group_consultant_charges(services),
        "payments": payments,
        "length_of_stay": admission.length_of_stay(),
    }


# =======================================================
# ADMISSIONS
# =======================================================

@login_required
def admission_list(request):
    query = request.GET.get("q", "").strip()
    show = request.GET.get("status", Admission.ACTIVE)

    admission_qs = Admission.objects.select_related("patient", "bed", "billing")
    if show in (Admission.ACTIVE, Admission.DISCHARGED):
        admission_qs = admission_qs.filter(status=show)
    if query:
        admission_qs = admission_qs.filter(
            Q(name__icontains=query) | Q(phone__icontains=query) | Q(patient__uhid__icontains=query)
        )

    return render(request, "ipd/admission_list.html", {
        "admissions": admission_qs,
        "query": query,
        "status": show,
    })


@login_required
def create_admission(request):
    if request.method == "POST":
        form = AdmissionForm(request.POST)
        if form.is_valid():
            try:
                admission = admissions.create_admission(
                    form.patient_data(),
                    form.admission_data(),
                    deposit=form.cleaned_data["deposit"],
                    payment_type=form.cleaned_data["payment_mode"],
                    editor=_editor(request),
                )
            except WRITE_ERRORS as exc:
                logger.error("Admission failed: %s", exc)
                messages.error(request, f"Could not admit patient: {exc}")
            else:
                messages.success(request, f"{admission.name} admitted ({admission.patient.uhid}).")
                return redirect("ipd:billing_detail", admission_id=admission.pk)
    else:
        form = AdmissionForm(initial={"admission_date": timezone.localdate()})

    return render(request, "ipd/admission_form.html", {"form": form, "is_edit": False})


@login_required
def edit_admission(request, admission_id):
    admission = get_object_or_404(Admission.objects.select_related("patient", "bed", "billing"), pk=admission_id)

    if request.method == "POST":
        form = AdmissionEditForm(request.POST, admission=admission)
        if form.is_valid():
            try:
                changes = admissions.update_admission(
                    admission,
                    form.edit_data(),
                    editor=_editor(request),
                    expected_version=form.cleaned_data["version"],
                )
            except WRITE_ERRORS as exc:
                logger.error("Edit of IPD %s failed: %s", admission.pk, exc)
                messages.error(request, f"Could not save changes: {exc}")
            else:
                if changes:
                    messages.success(request, f"Saved {len(changes)} change(s).")
                else:
                    messages.info(request, "No changes detected.")
                return redirect("ipd:billing_detail", admission_id=admission.pk)
    else:
        initial = admissions.admission_snapshot(admission)
        form = AdmissionEditForm(initial=initial, admission=admission)

    form.fields["bed"].queryset = beds.list_beds(admission.room_type, current_bed=admission.bed)
    return render(request, "ipd/admission_form.html", {"form": form, "admission": admission, "is_edit": True})


@login_required
def discharge(request, admission_id):
    admission = get_object_or_404(Admission, pk=admission_id)
    if request.method == "POST":
        form = DischargeForm(request.POST)
        if form.is_valid():
            try:
                admissions.discharge_admission(
                    admission,
                    editor=_editor(request),
                    discharge_date=form.cleaned_data["discharge_date"],
                    expected_version=form.cleaned_data["version"],
                )
            except WRITE_ERRORS as exc:
                messages.error(request, f"Could not discharge: {exc}")
            else:
                messages.success(request, f"{admission.name} discharged.")
        else:
            _form_errors(request, form)
    return redirect("ipd:billing_detail", admission_id=admission.pk)


@login_required
def ipd_changes(request):
    changes = AdmissionChange.objects.select_related("admission")
    uhid = request.GET.get("uhid", "").strip()
    if uhid:
        changes = changes.filter(patient_uhid=uhid)
    return render(request, "ipd/ipd_changes.html", {"changes": changes[:200], "uhid": uhid})


# =======================================================
# BILLING LEDGER
# =======================================================

@login_required
def billing_detail(request, admission_id):
    admission, billing = _billing_for(admission_id)
    context = _ledger_context(admission, billing)
    context.update({
        "service_form": ServiceChargeForm(),
        "bulk_formset": ServiceChargeFormSet(prefix="bulk"),
        "consultant_form": ConsultantChargeForm(),
        "payment_form": PaymentForm(),
        "discount_form": DiscountForm(initial={"discount": billing.discount}),
        "discharge_form": DischargeForm(initial={"version": admission.version}),
        "doctor_charges": {
            doctor.pk: doctor.visit_charge_for(admission.room_type) for doctor in Doctor.objects.all()
        },
    })
    return render(request, "ipd/billing_detail.html", context)


@login_required
def add_service(request, admission_id):
    admission, billing = _billing_for(admission_id)
    if request.method == "POST":
        form = ServiceChargeForm(request.POST)
        if form.is_valid():
            try:
                ledger.add_service_charge(
                    billing,
                    form.cleaned_data["service_name"],
                    form.cleaned_data["amount"],
                    form.cleaned_data["quantity"],
                )
            except WRITE_ERRORS as exc:
                messages.error(request, f"Could not add service: {exc}")
            else:
                messages.success(request, f"{form.cleaned_data['service_name']} added.")
        else:
            _form_errors(request, form)
    return redirect("ipd:billing_detail", admission_id=admission.pk)


@login_required
def add_bulk_services(request, admission_id):
    admission, billing = _billing_for(admission_id)
    if request.method == "POST":
        formset = ServiceChargeFormSet(request.POST, prefix="bulk")
        if formset.is_valid():
            items = [form.cleaned_data for form in formset if form.cleaned_data]
            try:
                added = ledger.add_bulk_services(billing, items)
            except WRITE_ERRORS as exc:
                messages.error(request, f"Could not add services: {exc}")
            else:
                messages.success(request, f"{len(added)} service unit(s) added.")
        else:
            for form in formset:
                _form_errors(request, form)
    return redirect("ipd:billing_detail", admission_id=admission.pk)


@login_required
def delete_service(request, admission_id):
    admission, billing = _billing_for(admission_id)
    if request.method == "POST":
        name = request.POST.get("service_name", "")
        try:
            removed = ledger.remove_service_charge(billing, name, request.POST.get("amount"))
        except WRITE_ERRORS as exc:
            messages.error(request, f"Could not remove service: {exc}")
        else:
            messages.success(request, f"Removed {removed} x {name}.")
    return redirect("ipd:billing_detail", admission_id=admission.pk)


@login_required
def add_consultant_charge(request, admission_id):
    admission, billing = _billing_for(admission_id)
    if request.method == "POST":
        form = ConsultantChargeForm(request.POST)
        if form.is_valid():
            try:
                ledger.add_consultant_charge(
                    billing,
                    form.cleaned_data["doctor_name"],
                    form.cleaned_data["visit_charge"],
                    form.cleaned_data["visit_times"],
                )
            except WRITE_ERRORS as exc:
                messages.error(request, f"Could not add consultant charge: {exc}")
            else:
                messages.success(request, f"Consultant charge for Dr. {form.cleaned_data['doctor_name']} added.")
        else:
            _form_errors(request, form)
    return redirect("ipd:billing_detail", admission_id=admission.pk)


@login_required
def delete_consultant_charges(request, admission_id):
    admission, billing = _billing_for(admission_id)
    if request.method == "POST":
        doctor_name = request.POST.get("doctor_name", "")
        try:
            removed = ledger.remove_consultant_charges(billing, doctor_name)
        except WRITE_ERRORS as exc:
            messages.error(request, f"Could not remove consultant charges: {exc}")
        else:
            messages.success(request, f"Removed {removed} visit(s) by Dr. {doctor_name}.")
    return redirect("ipd:billing_detail", admission_id=admission.pk)


@login_required
def record_payment(request, admission_id):
    admission, billing = _billing_for(admission_id)
    if request.method == "POST":
        form = PaymentForm(request.POST)
        if form.is_valid():
            data = form.cleaned_data
            try:
                payment = ledger.record_payment(
                    billing,
                    data["amount"],
                    data["payment_type"],
                    entry_type=data["type"],
                    amount_type=data["amount_type"],
                    through=data["through"],
                    date=data["date"],
                    notify=data["send_whatsapp_notification"],
                )
            except WRITE_ERRORS as exc:
                messages.error(request, f"Could not record payment: {exc}")
            else:
                messages.success(request, f"{payment.get_type_display()} of ₹{payment.amount} recorded.")
        else:
            _form_errors(request, form)
    return redirect("ipd:billing_detail", admission_id=admission.pk)


@login_required
def delete_payment(request, admission_id, payment_id):
    admission, billing = _billing_for(admission_id)
    if request.method == "POST":
        try:
            ledger.delete_payment(billing, payment_id)
        except WRITE_ERRORS as exc:
            messages.error(request, f"Could not delete payment: {exc}")
        else:
            messages.success(request, "Payment deleted.")
    return redirect("ipd:billing_detail", admission_id=admission.pk)


@login_required
def apply_discount(request, admission_id):
    admission, billing = _billing_for(admission_id)
    if request.method == "POST":
        form = DiscountForm(request.POST)
        if form.is_valid():
            try:
                ledger.set_discount(billing, form.cleaned_data["discount"])
            except WRITE_ERRORS as exc:
                messages.error(request, f"Could not apply discount: {exc}")
            else:
                messages.success(request, "Discount updated.")
        else:
            _form_errors(request, form)
    return redirect("ipd:billing_detail", admission_id=admission.pk)


# =======================================================
# INVOICE
# =======================================================

@login_required
def view_invoice(request, admission_id):
    admission, billing = _billing_for(admission_id)
    return render(request, "ipd/invoice.html", _ledger_context(admission, billing))


@login_required
def download_invoice_pdf(request, admission_id):
    admission, billing = _billing_for(admission_id)
    context = _ledger_context(admission, billing)
    context["pdf"] = True

    html = get_template("ipd/invoice.html").render(context, request)
    buffer = BytesIO()
    pisa_status = pisa.CreatePDF(html, dest=buffer, encoding="UTF-8")
    buffer.seek(0)

    if pisa_status.err:
        logger.error("Invoice PDF for IPD %s failed with %s error(s)", admission.pk, pisa_status.err)
        return HttpResponse("PDF generation error", status=500)

    response = HttpResponse(buffer, content_type="application/pdf")
    filename = f"invoice_{admission.patient.uhid}_{admission.admit_date_key}.pdf"
    response["Content-Disposition"] = f'attachment; filename="{filename}"'
    return response


# =======================================================
# BEDS
# =======================================================

@login_required
def bed_options(request, room_type):
    """Beds the admission form can offer for ``room_type``."""
    try:
        current = int(request.GET.get("current", ""))
    except ValueError:
        current = None
    results = [
        {"id": bed.pk, "bed_number": bed.bed_number, "bed_type": bed.bed_type, "status": bed.status}
        for bed in beds.list_beds(room_type, current_bed=current)
    ]
    return JsonResponse(results, safe=False)


@login_required
def bed_board(request):
    room_type = request.GET.get("room_type") or None
    bed_qs = Bed.objects.all()
    if room_type:
        bed_qs = bed_qs.filter(room_type=room_type)

    occupants = {
        admission.bed_id: admission
        for admission in Admission.objects.filter(status=Admission.ACTIVE, bed__in=bed_qs)
    }
    rooms = {}
    for bed in bed_qs:
        occupant = occupants.get(bed.pk)
        rooms.setdefault(bed.room_type, []).append({
            "id": bed.pk,
            "bed_number": bed.bed_number,
            "bed_type": bed.bed_type,
            "status": bed.status,
            "admission_id": occupant.pk if occupant else None,
            "patient_name": occupant.name if occupant else "",
        })

    return JsonResponse({
        "counts": beds.bed_status_counts(room_type),
        "room_types": dict(ROOM_TYPE_CHOICES),
        "rooms": rooms,
    })
