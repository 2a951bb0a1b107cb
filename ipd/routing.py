from django.urls import re_path

from .consumers import BedStatusConsumer

websocket_urlpatterns = [
    re_path(r"^ws/beds/$", BedStatusConsumer.as_asgi()),
    re_path(r"^ws/beds/(?P<room_type>\w+)/$", BedStatusConsumer.as_asgi()),
]
