"""Outbound HTTP clients: push notifications, readable text, image CDN."""

from .cdn import CDNClient
from .onesignal import OneSignalClient
from .reader import ReaderClient

__all__ = [
    "CDNClient",
    "OneSignalClient",
    "ReaderClient",
]
