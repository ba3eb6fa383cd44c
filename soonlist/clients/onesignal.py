"""OneSignal push notification client."""

import asyncio
from typing import Any, Dict

import aiohttp
import structlog

from soonlist.models.config import SoonlistConfig
from soonlist.models.messages import NotificationDispatch, NotificationResult

logger = structlog.get_logger(__name__)


class OneSignalClient:
    """Send push notifications through the OneSignal REST API.

    Notifications are addressed by external user id, so every device the
    user registered receives them.
    """

    def __init__(
        self,
        api_key: str,
        app_id: str,
        api_url: str = "https://onesignal.com/api/v1",
        timeout: float = 10.0,
    ):
        self.api_key = api_key
        self.app_id = app_id
        self.api_url = api_url.rstrip('/')
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.logger = logger.bind(component="onesignal_client")

    @classmethod
    def from_config(cls, config: SoonlistConfig) -> "OneSignalClient":
        return cls(
            api_key=config.one_signal_rest_api_key,
            app_id=config.one_signal_app_id,
            api_url=config.one_signal_api_url,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.app_id)

    def build_payload(self, dispatch: NotificationDispatch) -> Dict[str, Any]:
        return {
            "app_id": self.app_id,
            "include_external_user_ids": [dispatch.user_id],
            "channel_for_external_user_ids": "push",
            "headings": {"en": dispatch.title},
            "subtitle": {"en": dispatch.subtitle},
            "contents": {"en": dispatch.body},
            "data": {"url": dispatch.url, "notificationId": dispatch.notification_id},
            "url": dispatch.url,
        }

    async def send(self, dispatch: NotificationDispatch) -> NotificationResult:
        """Send one notification.

        Args:
            dispatch: Recipient, content and deep link

        Returns:
            NotificationResult; failures are reported, never raised
        """
        if not self.configured:
            return NotificationResult(success=False, error="OneSignal credentials not configured")

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Basic {self.api_key}",
        }

        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            try:
                async with session.post(
                    f"{self.api_url}/notifications",
                    json=self.build_payload(dispatch),
                    headers=headers,
                ) as response:
                    body = await response.json(content_type=None) or {}
                    errors = body.get("errors")
                    if response.status >= 400 or errors:
                        return NotificationResult(
                            success=False,
                            error=str(errors or f"HTTP {response.status}"),
                        )
                    return NotificationResult(
                        success=True,
                        id=body.get("id"),
                        recipients=body.get("recipients"),
                    )
            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
                self.logger.error("OneSignal request failed", notification_id=dispatch.notification_id, error=str(e))
                return NotificationResult(success=False, error=str(e))
