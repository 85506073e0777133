from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .assistant import CourseAssistant
from .conversation_store import ConversationStore
from .models import InboundMessageEvent
from .whatsapp_client import WhatsAppGateway

logger = logging.getLogger("course_assistant.delivery")


@dataclass(frozen=True)
class DeliveryResult:
    handled: bool
    route: Optional[str] = None
    reply: Optional[str] = None
    delivered: bool = False


IGNORED = DeliveryResult(handled=False)


class DeliveryAdapter:
    """Bridges inbound WhatsApp events to the assistant and sends the reply back."""

    def __init__(
        self,
        assistant: CourseAssistant,
        store: ConversationStore,
        gateway: Optional[WhatsAppGateway] = None,
    ) -> None:
        self._assistant = assistant
        self._store = store
        self._gateway = gateway

    @property
    def store(self) -> ConversationStore:
        return self._store

    def handle_event(self, event: InboundMessageEvent) -> DeliveryResult:
        """Purpose: Answer one inbound chat message end to end.
        Inputs/Outputs: Input is an InboundMessageEvent; output is a DeliveryResult.
        Side Effects / State: Updates the conversation's memory under its lock and,
            when a gateway is configured, sends the reply to the chat.
        Dependencies: CourseAssistant.handle_message, ConversationStore.lock,
            WhatsAppGateway.send_text.
        Failure Modes: Self-originated or blank events are ignored. Send failures
            are reported as delivered=False, never raised.
        If Removed: The webhook cannot answer users.
        Testing Notes: Use a fake gateway and assert ignored/handled/delivered flags.
        """
        # Ignore our own echoes and empty bodies.
        if event.sender_is_self:
            return IGNORED
        text = (event.body_text or "").strip()
        if not text or not event.conversation_id:
            return IGNORED

        # One message at a time per conversation; replies leave in the same order.
        delivered = False
        with self._store.lock(event.conversation_id) as state:
            reply = self._assistant.handle_message(state, text)
            if self._gateway is not None and self._gateway.configured:
                delivered = self._gateway.send_text(event.conversation_id, reply.text)
                if not delivered:
                    logger.error(
                        "conversation=%s route=%s reply not delivered", event.conversation_id, reply.route
                    )
        logger.info("conversation=%s route=%s delivered=%s", event.conversation_id, reply.route, delivered)
        return DeliveryResult(handled=True, route=reply.route, reply=reply.text, delivered=delivered)
