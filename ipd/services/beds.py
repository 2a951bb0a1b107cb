"""Bed registry.

``allocate`` and ``release`` are the only code paths that change a bed's
occupancy. The admission -> bed link is the source of truth; ``Bed.status``
is a cache of it and ``sync_bed_status`` rebuilds that cache.
"""
import logging

from django.db import transaction
from django.db.models import Count, Q

from ipd.exceptions import BedAlreadyOccupied, BedNotFound, BedOccupantMismatch
from ipd.models import Admission, Bed

logger = logging.getLogger(__name__)


def _locked_bed(room_type, bed_id):
    try:
        return Bed.objects.select_for_update().get(room_type=room_type, pk=bed_id)
    except (Bed.DoesNotExist, ValueError):
        raise BedNotFound(room_type, bed_id) from None


def current_occupant(bed, exclude=None):
    """Active admission holding ``bed``, ignoring ``exclude``."""
    admissions = Admission.objects.filter(bed=bed, status=Admission.ACTIVE)
    if exclude is not None and exclude.pk is not None:
        admissions = admissions.exclude(pk=exclude.pk)
    return admissions.order_by("created_at").first()


@transaction.atomic
def allocate(room_type, bed_id, admission):
    bed = _locked_bed(room_type, bed_id)

    # Checked whatever the cached status says
    occupant = current_occupant(bed, exclude=admission)
    if occupant is not None:
        logger.warning("Refused to allocate %s to IPD %s: held by IPD %s", bed, admission.pk, occupant.pk)
        raise BedAlreadyOccupied(bed, occupant)

    if bed.status == Bed.OCCUPIED:
        holds_it = (
            admission.pk is not None
            and Admission.objects.filter(pk=admission.pk, bed=bed, status=Admission.ACTIVE).exists()
        )
        if not holds_it:
            logger.warning("Refused to allocate %s to IPD %s: already occupied", bed, admission.pk)
            raise BedAlreadyOccupied(bed)
        return bed

    previous = bed.status
    bed.status = Bed.OCCUPIED
    bed.save(update_fields=["status", "updated_at"])
    logger.info("Allocated %s to IPD %s (was %s)", bed, admission.pk, previous)
    return bed


@transaction.atomic
def release(room_type, bed_id, admission=None):
    """Flip an occupied bed back to Available.

    Without ``admission`` the release is unconditional. With it, the call
    fails if some other active admission is holding the bed.
    """
    bed = _locked_bed(room_type, bed_id)

    if admission is not None:
        occupant = current_occupant(bed, exclude=admission)
        if occupant is not None:
            raise BedOccupantMismatch(bed, occupant)

    if bed.status != Bed.OCCUPIED:
        logger.info("Release of %s skipped: status is %s", bed, bed.status)
        return bed

    bed.status = Bed.AVAILABLE
    bed.save(update_fields=["status", "updated_at"])
    logger.info("Released %s", bed)
    return bed


def list_beds(room_type, current_bed=None):
    """Beds that can be picked for an admission in ``room_type``.

    The bed already held by the admission being edited stays in the list
    so its occupant can keep it. Beds held by any other active admission
    are left out even when their status says Available.
    """
    current_pk = getattr(current_bed, "pk", current_bed)
    held = Admission.objects.filter(status=Admission.ACTIVE, bed__isnull=False)
    selectable = Q(status=Bed.AVAILABLE)
    if current_pk is not None:
        held = held.exclude(bed_id=current_pk)
        selectable |= Q(pk=current_pk)
    return Bed.objects.filter(selectable, room_type=room_type).exclude(pk__in=held.values("bed_id"))


def bed_status_counts(room_type=None):
    beds = Bed.objects.all()
    if room_type:
        beds = beds.filter(room_type=room_type)

    counts = {status: 0 for status, _ in Bed.STATUS_CHOICES}
    for row in beds.values("status").annotate(total=Count("id")):
        counts[row["status"]] = row["total"]
    counts["total"] = sum(counts.values())
    return counts


def sync_bed_status(dry_run=False):
    """Rebuild ``Bed.status`` from active admissions.

    Returns ``(bed, old_status, new_status)`` for every bed that was out of
    step. Maintenance and Reserved beds with no occupant are left alone.
    """
    held = set(
        Admission.objects.filter(status=Admission.ACTIVE, bed__isnull=False)
        .values_list("bed_id", flat=True)
    )
    fixes = []

    with transaction.atomic():
        for bed in Bed.objects.select_for_update().order_by("pk"):
            if bed.pk in held and bed.status != Bed.OCCUPIED:
                new_status = Bed.OCCUPIED
            elif bed.pk not in held and bed.status == Bed.OCCUPIED:
                new_status = Bed.AVAILABLE
            else:
                continue

            fixes.append((bed, bed.status, new_status))
            if not dry_run:
                logger.info("Bed status sync: %s %s -> %s", bed, bed.status, new_status)
                bed.status = new_status
                bed.save(update_fields=["status", "updated_at"])

    return fixes
