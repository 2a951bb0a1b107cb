import logging
import time

from django.conf import settings
from django.db import OperationalError, transaction
from django.db.models import F
from django.utils import timezone

from ipd.exceptions import SequenceUnavailable
from ipd.models import SequenceCounter

logger = logging.getLogger(__name__)


def format_uhid(counter, on_date=None, prefix=None):
    """Render a UHID such as ``GMH-250621-00042``."""
    on_date = on_date or timezone.localdate()
    prefix = prefix or settings.UHID_PREFIX
    return f"{prefix}-{on_date:%y%m%d}-{counter:05d}"


def _increment(key):
    with transaction.atomic():
        counter, _ = SequenceCounter.objects.select_for_update().get_or_create(key=key)
        SequenceCounter.objects.filter(pk=counter.pk).update(value=F("value") + 1)
        counter.refresh_from_db(fields=["value"])
        return counter.value


def next_uhid():
    """Atomically bump the shared counter and return the new UHID.

    The counter row is locked for the increment, so concurrent callers
    always see distinct values. Lock contention is retried with
    exponential backoff; once the retries run out ``SequenceUnavailable``
    is raised instead of handing out an unguarded identifier.

    Call this outside of any open transaction so each retry gets a fresh one.
    """
    today = timezone.localdate()
    key = settings.UHID_COUNTER_KEY
    attempts = max(1, settings.UHID_MAX_RETRIES)
    backoff = settings.UHID_RETRY_BACKOFF

    for attempt in range(1, attempts + 1):
        try:
            value = _increment(key)
        except OperationalError as exc:
            logger.warning("UHID counter busy (attempt %s/%s): %s", attempt, attempts, exc)
            if attempt == attempts:
                raise SequenceUnavailable(
                    f"Could not allocate a UHID after {attempts} attempts"
                ) from exc
            time.sleep(backoff * 2 ** (attempt - 1))
            continue

        uhid = format_uhid(value, today)
        logger.info("Issued UHID %s", uhid)
        return uhid
