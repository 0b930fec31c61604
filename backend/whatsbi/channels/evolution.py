"""
Evolution API (WhatsApp) Integration.
Sends text and typing presence, and parses inbound webhook events.
"""

import logging
from typing import Dict, Any, Optional

import httpx

from ..core.logging_config import mask_phone

logger = logging.getLogger(__name__)

MESSAGE_EVENTS = ("messages.upsert", "message")
JID_SUFFIXES = ("@s.whatsapp.net", "@g.us")


def clean_phone(phone: str) -> str:
    return "".join(ch for ch in phone if ch.isdigit())


class EvolutionClient:
    """
    Evolution API client bound to one WhatsApp instance.
    """

    def __init__(self, api_url: str, api_key: str, instance_name: str, timeout: float = 30.0):
        """
        Initialize the client.

        Args:
            api_url: Evolution API base URL
            api_key: Instance API key, sent as the ``apikey`` header
            instance_name: Name of the connected WhatsApp instance
            timeout: Request timeout in seconds
        """
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.instance_name = instance_name
        self.timeout = timeout

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "apikey": self.api_key,
        }

    async def send_text_message(self, phone: str, text: str) -> Dict[str, Any]:
        """
        Send a text message.

        Args:
            phone: Recipient phone number
            text: Message text

        Raises:
            httpx.HTTPStatusError: The gateway rejected the message
        """
        url = f"{self.api_url}/message/sendText/{self.instance_name}"
        payload = {"number": clean_phone(phone), "text": text}

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(url, json=payload, headers=self._get_headers())
            resp.raise_for_status()

        logger.info(
            "WhatsApp message sent",
            extra={"extra_fields": {"phone": mask_phone(phone), "length": len(text)}}
        )
        return resp.json()

    async def send_typing_indicator(self, phone: str) -> bool:
        """Show "typing..." to the recipient. Failures are logged, not raised."""
        url = f"{self.api_url}/chat/presence/{self.instance_name}"
        payload = {"number": clean_phone(phone), "presence": "composing"}

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(url, json=payload, headers=self._get_headers())
                resp.raise_for_status()
            return True
        except httpx.HTTPError as e:
            logger.warning(f"Could not send typing indicator: {e}")
            return False

    @staticmethod
    def parse_event(body: Dict[str, Any]) -> Dict[str, Any]:
        """
        Parse an Evolution webhook body into a standardized format.

        Args:
            body: Raw event body

        Returns:
            ``{"type": "message", "phone", "text", "message_id", "from_me",
            "push_name"}`` for message events, ``{"type": "unknown", ...}``
            otherwise
        """
        event = body.get("event") or body.get("type") or ""
        if event not in MESSAGE_EVENTS:
            return {"type": "unknown", "event": event}

        data = body.get("data") or body
        key = data.get("key") or {}
        message = data.get("message") or {}

        remote_jid = key.get("remoteJid") or data.get("remoteJid") or ""
        phone = remote_jid
        for suffix in JID_SUFFIXES:
            phone = phone.replace(suffix, "")

        text = (
            message.get("conversation")
            or (message.get("extendedTextMessage") or {}).get("text")
            or (message.get("imageMessage") or {}).get("caption")
            or (message.get("videoMessage") or {}).get("caption")
            or (message.get("documentMessage") or {}).get("caption")
            or ""
        )

        return {
            "type": "message",
            "phone": phone,
            "text": text,
            "message_id": key.get("id") or "",
            "from_me": bool(key.get("fromMe", False)),
            "push_name": data.get("pushName"),
            "instance": body.get("instance"),
        }


def create_evolution_client(api_url: Optional[str], api_key: Optional[str],
                            instance_name: Optional[str]) -> Optional[EvolutionClient]:
    """Build a client, or None when the gateway is not configured."""
    if not (api_url and api_key and instance_name):
        return None
    return EvolutionClient(api_url=api_url, api_key=api_key, instance_name=instance_name)
