"""
Capture Notification Service

Sends the "event captured" push notification after an event is created,
in the background, without ever failing the capture.
"""

from datetime import datetime, time, timedelta, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

import structlog

from soonlist.background import BackgroundTasks
from soonlist.clients.onesignal import OneSignalClient
from soonlist.database.repositories import EventRepository
from soonlist.materializer import generate_public_id
from soonlist.models.messages import NotificationContent, NotificationDispatch, NotificationResult
from soonlist.prompts import normalize_timezone


logger = structlog.get_logger(__name__)

EVENT_CAPTURED_TITLE = "Event captured ✨"


def get_notification_content(event_name: str, count: int) -> NotificationContent:
    """Build the notification text for the user's ``count``-th capture today."""
    if count == 1:
        body = "First capture today! 🤔 What's next?"
    elif count == 2:
        body = "2 captures today! ✌️ Keep 'em coming!"
    elif count == 3:
        body = "3 captures today! 🔥 You're on fire!"
    else:
        body = f"{count} captures today! 🌌 The sky's the limit!"
    return NotificationContent(title=EVENT_CAPTURED_TITLE, subtitle=event_name, body=body)


def generate_notification_id() -> str:
    return f"not_{generate_public_id()}"


def day_bounds(timezone_name: Optional[str], now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """UTC bounds ``[start, end)`` of the current day in ``timezone_name``."""
    zone = ZoneInfo(normalize_timezone(timezone_name))
    today = (now or datetime.now(timezone.utc)).astimezone(zone).date()
    start = datetime.combine(today, time.min, tzinfo=zone)
    end = datetime.combine(today + timedelta(days=1), time.min, tzinfo=zone)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


class NotificationDispatcher:
    """Schedules capture notifications as detached background work."""

    def __init__(
        self,
        push_client: OneSignalClient,
        repository: EventRepository,
        background: BackgroundTasks,
        app_url_scheme: str = "soonlist",
    ):
        self.push_client = push_client
        self.repository = repository
        self.background = background
        self.app_url_scheme = app_url_scheme
        self.logger = logger.bind(component="notification_dispatcher")

    def event_url(self, event_id: str) -> str:
        return f"{self.app_url_scheme}://event/{event_id}"

    def dispatch_event_created(
        self,
        *,
        user_id: str,
        event_id: str,
        event_name: str,
        timezone_name: Optional[str],
        source: str,
        method: str,
    ) -> str:
        """
        Schedule the capture notification and return immediately.

        Args:
            user_id: Recipient; all of the user's devices are addressed
            event_id: Captured event, for the deep link
            event_name: Shown as the subtitle
            timezone_name: User's timezone, for the daily capture count
            source: Procedure that captured the event
            method: Capture method (rawText, url, image)

        Returns:
            The notification id, for log correlation
        """
        notification_id = generate_notification_id()
        self.background.schedule(
            self._send_event_created(
                notification_id=notification_id,
                user_id=user_id,
                event_id=event_id,
                event_name=event_name,
                timezone_name=timezone_name,
                source=source,
                method=method,
            ),
            name=f"notify-{notification_id}",
        )
        return notification_id

    async def _send_event_created(
        self,
        *,
        notification_id: str,
        user_id: str,
        event_id: str,
        event_name: str,
        timezone_name: Optional[str],
        source: str,
        method: str,
    ) -> Optional[NotificationResult]:
        try:
            start, end = day_bounds(timezone_name)
            count = await self.repository.count_created_between(user_id, start, end)
            content = get_notification_content(event_name, max(count, 1))

            result = await self.push_client.send(
                NotificationDispatch(
                    notification_id=notification_id,
                    user_id=user_id,
                    title=content.title,
                    subtitle=content.subtitle,
                    body=content.body,
                    url=self.event_url(event_id),
                    event_id=event_id,
                    source=source,
                    method=method,
                )
            )
        except Exception as e:
            self.logger.error(
                "Failed to send capture notification",
                user_id=user_id,
                notification_id=notification_id,
                event_id=event_id,
                source=source,
                method=method,
                error=str(e),
            )
            return None

        if result.success:
            self.logger.info(
                "Capture notification sent",
                user_id=user_id,
                notification_id=notification_id,
                onesignal_id=result.id,
                source=source,
                method=method,
                daily_count=count,
            )
        else:
            self.logger.warning(
                "Capture notification not sent",
                user_id=user_id,
                notification_id=notification_id,
                source=source,
                method=method,
                error=result.error,
            )
        return result
