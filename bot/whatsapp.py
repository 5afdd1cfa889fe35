"""
WhatsApp Cloud API client and inbound payload parsing.

Sending is best effort: a failed delivery is logged and reported as False,
never raised, so a broken token cannot take down message handling.
"""

from typing import Any, Optional

import httpx
import structlog
from pydantic import BaseModel

from .config import WhatsAppSettings

logger = structlog.get_logger(__name__)

MAX_TEXT_LENGTH = 4096


class WhatsAppError(Exception):
    """Raised when media cannot be fetched from the Graph API."""
    pass


class InboundMessage(BaseModel):
    sender: str
    type: str
    text: Optional[str] = None
    media_id: Optional[str] = None
    message_id: Optional[str] = None


def parse_inbound(payload: dict[str, Any]) -> Optional[InboundMessage]:
    """Pull the first message out of a Meta webhook payload, if any."""
    entry = (payload.get("entry") or [{}])[0]
    change = (entry.get("changes") or [{}])[0]
    value = change.get("value") or {}
    messages = value.get("messages") or []

    if not messages:
        return None

    msg = messages[0]
    sender = msg.get("from")
    if not sender:
        return None

    msg_type = msg.get("type", "")
    return InboundMessage(
        sender=sender,
        type=msg_type,
        text=(msg.get("text") or {}).get("body") if msg_type == "text" else None,
        media_id=(msg.get("audio") or {}).get("id") if msg_type == "audio" else None,
        message_id=msg.get("id"),
    )


def fit_text(text: str, limit: int = MAX_TEXT_LENGTH) -> str:
    """Trim a reply to the API limit, dropping whole lines from the end."""
    if len(text) <= limit:
        return text

    cut = text[:limit]
    if "\n" in cut:
        cut = cut[:cut.rindex("\n")]

    logger.warning("reply_truncated", length=len(text), kept=len(cut))
    return cut


class WhatsAppClient:
    def __init__(self, settings: WhatsAppSettings, http: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self.http = http or httpx.AsyncClient(timeout=settings.timeout_seconds)

    @property
    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.settings.token}"}

    async def send_text(self, to: str, text: str) -> bool:
        payload = {
            "messaging_product": "whatsapp",
            "to": to,
            "type": "text",
            "text": {"body": fit_text(text)},
        }
        try:
            response = await self.http.post(self.settings.messages_url, json=payload, headers=self._headers)
            response.raise_for_status()
            return True
        except httpx.HTTPStatusError as e:
            logger.error("delivery_failed", to=to, status=e.response.status_code, body=e.response.text)
        except httpx.HTTPError as e:
            logger.error("delivery_failed", to=to, error=str(e))
        return False

    async def download_media(self, media_id: str) -> bytes:
        try:
            info = await self.http.get(f"{self.settings.media_url}/{media_id}", headers=self._headers)
            info.raise_for_status()
            media_url = info.json().get("url")
            if not media_url:
                raise WhatsAppError(f"Media {media_id} has no download URL")

            media = await self.http.get(media_url, headers=self._headers)
            media.raise_for_status()
            return media.content
        except (httpx.HTTPError, ValueError) as e:
            raise WhatsAppError(f"Could not download media {media_id}: {e}") from e

    async def aclose(self):
        await self.http.aclose()
