# ipd/signals.py
import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import receiver

from .consumers import ALL_BEDS_GROUP, bed_group_name
from .models import Bed

logger = logging.getLogger(__name__)


def broadcast_bed_status(payload):
    layer = get_channel_layer()
    if layer is None:
        return
    event = {"type": "bed_status", **payload}
    for group in (bed_group_name(payload["room_type"]), ALL_BEDS_GROUP):
        async_to_sync(layer.group_send)(group, event)


@receiver(post_save, sender=Bed)
def notify_bed_status(sender, instance, created, **kwargs):
    payload = {
        "bed_id": instance.pk,
        "bed_number": instance.bed_number,
        "room_type": instance.room_type,
        "status": instance.status,
    }
    # Only tell live bed views about states that were actually committed
    transaction.on_commit(lambda: broadcast_bed_status(payload))
