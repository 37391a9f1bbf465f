"""
Completion Notification Service

Tells the voters who asked to be notified that testing results for a
product are ready. Notifications go to the push gateway as one batch per
product; the gateway fans out to devices.
"""

from typing import Optional

import httpx
import structlog

from core.config import settings
from models.product_vote import ProductVoteDocument

logger = structlog.get_logger(__name__)


class CompletionNotifier:
    """
    Service for sending "results ready" push notifications.

    Features:
    - One gateway request per completed product
    - Bearer token auth when PUSH_GATEWAY_TOKEN is set
    - Logs and reports failures instead of raising them
    """

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        gateway_url: Optional[str] = None,
        token: Optional[str] = None,
    ):
        self.http_client = http_client
        self.gateway_url = gateway_url if gateway_url is not None else settings.PUSH_GATEWAY_URL
        self.token = token if token is not None else settings.PUSH_GATEWAY_TOKEN

    @property
    def is_available(self) -> bool:
        return bool(self.gateway_url)

    async def send_results_ready(self, doc: ProductVoteDocument) -> dict:
        """
        Notify everyone on the record's notify_on_complete list.

        Returns:
            Dict with notification stats
        """
        recipients = list(doc.notify_on_complete)
        if not recipients:
            return {"sent": 0, "errors": 0}

        if not self.is_available:
            logger.warning(
                "push_gateway_not_configured",
                action="results_ready",
                barcode=doc.barcode,
                recipients=len(recipients),
            )
            return {"sent": 0, "errors": 0, "reason": "push_gateway_unconfigured"}

        payload = {
            "event": "results_ready",
            "barcode": doc.barcode,
            "product_name": doc.product_name,
            "linked_product_id": doc.linked_product_id,
            "recipients": recipients,
        }
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}

        try:
            if self.http_client is not None:
                response = await self.http_client.post(self.gateway_url, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS) as client:
                    response = await client.post(self.gateway_url, json=payload, headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(
                "results_ready_notification_failed",
                barcode=doc.barcode,
                recipients=len(recipients),
                error=str(e),
            )
            return {"sent": 0, "errors": len(recipients)}

        logger.info("results_ready_notifications_sent", barcode=doc.barcode, sent=len(recipients))
        return {"sent": len(recipients), "errors": 0}
