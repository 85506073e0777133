from __future__ import annotations

import logging
from typing import Optional

import httpx

logger = logging.getLogger("course_assistant.whatsapp")

SEND_PATH = "/send-message"


class WhatsAppGateway:
    """HTTP client for the WhatsApp gateway that owns the chat session."""

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self._base_url)

    def send_text(self, chat_id: str, message: str) -> bool:
        """Purpose: Deliver a plain-text message to a chat through the gateway.
        Inputs/Outputs: Inputs are the chat id and text; returns True on HTTP 2xx.
        Side Effects / State: One POST request to {base_url}/send-message.
        Dependencies: Uses httpx.Client with the configured timeout and bearer token.
        Failure Modes: Missing config, network errors and non-2xx responses are
            logged and return False; nothing is raised to the caller.
        If Removed: Replies are computed but never reach the user.
        Testing Notes: Use httpx.MockTransport to assert payload and error handling.
        """
        # Guard against missing configuration before touching the network.
        if not self.configured:
            logger.error("whatsapp gateway url is missing (WHATSAPP_GATEWAY_URL not set)")
            return False
        if not chat_id or not message:
            logger.warning("send_text: missing chat_id=%s or message", chat_id)
            return False

        headers = {"Authorization": f"Bearer {self._token}"} if self._token else {}
        payload = {"chatId": chat_id, "message": message}
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.post(f"{self._base_url}{SEND_PATH}", json=payload, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("error sending whatsapp message chat=%s error=%s", chat_id, exc)
            return False

        logger.info("gateway response status=%s chat=%s", response.status_code, chat_id)
        if response.is_success:
            return True
        logger.error(
            "gateway rejected message chat=%s status=%s body=%s",
            chat_id,
            response.status_code,
            response.text[:200],
        )
        return False
