"""
WhatsApp Webhook API - Handles incoming message events from the Evolution API.
"""

import logging
from collections import OrderedDict

import httpx
from fastapi import APIRouter, Request, HTTPException

from ..assistant.history import DIRECTION_INCOMING, DIRECTION_OUTGOING
from ..core.logging_config import LoggerAdapter, mask_phone
from ..sessions import generate_footer, generate_single_dataset_notice, is_switch_command

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/whatsapp", tags=["whatsapp"])

ASSISTANT_SENDER_NAME = "Assistente IA"


def apology_message(first_name: str) -> str:
    name = f" {first_name}" if first_name else ""
    return (
        f"Desculpe{name}, ainda estou com dificuldades técnicas. 🔧\n\n"
        f"Por favor, tente novamente em alguns minutos. "
        f"Se persistir, entre em contato com o suporte."
    )


class MessageDeduplicator:
    """Remembers recently seen message ids; the gateway may deliver twice."""

    def __init__(self, max_size: int = 1000):
        self.max_size = max_size
        self._seen: "OrderedDict[str, None]" = OrderedDict()

    def seen(self, message_id: str) -> bool:
        """True if ``message_id`` was already seen; records it otherwise."""
        if message_id in self._seen:
            return True
        self._seen[message_id] = None
        while len(self._seen) > self.max_size:
            self._seen.popitem(last=False)
        return False


@router.get("/webhook")
async def webhook_status():
    """Liveness probe for the gateway's webhook configuration screen."""
    return {"status": "ok", "service": "whatsapp-webhook"}


@router.post("/webhook")
async def whatsapp_webhook(request: Request):
    """
    Handle an incoming Evolution API event.

    Own messages, empty texts, non-message events, duplicates and unknown
    numbers are acknowledged and ignored. Anything else is resolved to a
    dataset and answered in the same request.
    """
    state = request.app.state
    evolution = getattr(state, "evolution", None)
    assistant = getattr(state, "assistant", None)

    if evolution is None:
        raise HTTPException(status_code=503, detail="WhatsApp gateway not configured")
    if assistant is None:
        raise HTTPException(status_code=503, detail="LLM provider not configured")

    body = await request.json()
    event = evolution.parse_event(body)

    if event["type"] != "message":
        return {"status": "ignored", "reason": "not a message event"}

    text = event["text"]
    if event["from_me"] or not text.strip():
        return {"status": "ignored", "reason": "fromMe or empty"}

    message_id = event["message_id"]
    if message_id and state.deduplicator.seen(message_id):
        return {"status": "ignored", "reason": "duplicate"}

    phone = event["phone"]
    log = LoggerAdapter(logger, {"phone": mask_phone(phone)})

    authorized = await state.directory.get_authorized_number(phone)
    if authorized is None:
        log.warning("Message from unauthorized number ignored")
        return {"status": "ignored", "reason": "unauthorized"}

    conversation_log = state.conversation_log
    await conversation_log.record(phone, DIRECTION_INCOMING, text, sender_name=event.get("push_name"))
    log.info("Incoming WhatsApp message", extra={"extra_fields": {"length": len(text)}})

    try:
        result = await state.resolver.resolve(phone, text, authorized)
        dataset_id = result.session.dataset_id if result.session else None

        if result.menu_message:
            reply_text = result.menu_message
        elif result.has_session and is_switch_command(text):
            reply_text = generate_single_dataset_notice(result.session.dataset_name)
        else:
            await evolution.send_typing_indicator(phone)
            reply = await assistant.answer(result.session, text, authorized)
            reply_text = reply.text + generate_footer(result.session.dataset_name)

        await evolution.send_text_message(phone, reply_text)
        await conversation_log.record(
            phone, DIRECTION_OUTGOING, reply_text,
            dataset_id=dataset_id, sender_name=ASSISTANT_SENDER_NAME,
        )

    except Exception as e:
        log.exception("Error processing WhatsApp message", extra={"extra_fields": {"error": str(e)}})
        try:
            await evolution.send_text_message(phone, apology_message(authorized.first_name))
        except httpx.HTTPError:
            log.exception("Failed to send apology message")
        return {"status": "error"}

    return {"status": "processed"}
