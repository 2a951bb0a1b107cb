from ipd.models import AdmissionChange


def log_admission_change(admission, changes, editor, change_type='edit',
                         outcome=AdmissionChange.APPLIED, detail=''):
    """Append an entry to the IPD change log."""
    return AdmissionChange.objects.create(
        admission=admission,
        patient_uhid=admission.patient.uhid,
        admit_date_key=admission.admit_date_key,
        patient_name=admission.name,
        change_type=change_type,
        changes=changes,
        outcome=outcome,
        detail=detail,
        edited_by=editor or 'unknown',
    )
