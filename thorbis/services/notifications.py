"""Admin approval notifications, dispatched after the response is sent."""

import logging

import httpx

from thorbis.core.config import settings

logger = logging.getLogger(__name__)

APPROVAL_FUNCTION = "send-business-approval-notification"


class NotificationClient:
    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url if base_url is not None else settings.NOTIFICATIONS_URL
        self.api_key = api_key if api_key is not None else settings.NOTIFICATIONS_API_KEY
        self.transport = transport

    async def invoke(self, function: str, body: dict) -> bool:
        if not self.base_url:
            logger.info("Notifications disabled; skipping %s", function)
            return False
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        async with httpx.AsyncClient(timeout=10, transport=self.transport) as client:
            resp = await client.post(f"{self.base_url.rstrip('/')}/{function}", json=body, headers=headers)
            resp.raise_for_status()
        return True


async def send_approval_notification(
    business_id: str,
    business_name: str,
    owner_email: str | None,
    client: NotificationClient | None = None,
) -> None:
    """Background task: failures are logged, never raised."""
    client = client or NotificationClient()
    try:
        await client.invoke(
            APPROVAL_FUNCTION,
            {"businessId": business_id, "businessName": business_name, "ownerEmail": owner_email},
        )
    except httpx.HTTPError as exc:
        logger.warning("Failed to send approval notification for %s: %s", business_id, exc)
