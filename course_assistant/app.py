from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException

from .assistant import CourseAssistant, ReplyGenerator
from .catalog import CatalogStore
from .config import Settings, load_settings
from .conversation_store import ConversationStore
from .delivery import DeliveryAdapter
from .gemini_client import BackendNotConfigured, GeminiClient
from .grounding import GroundingContextBuilder
from .models import (
    ClearHistoryRequest,
    ConversationResponse,
    InboundMessageEvent,
    SendMessageRequest,
    StatusResponse,
    WebhookResponse,
)
from .prompt_loader import load_instructions
from .utils import format_chat_id
from .whatsapp_client import WhatsAppGateway

BASE_DIR = Path(__file__).resolve().parent

ENV_PATH = BASE_DIR / ".." / ".env"
if ENV_PATH.exists():
    load_dotenv(ENV_PATH, override=True)

log_level_name = os.getenv("LOG_LEVEL", "INFO").upper()
log_level = getattr(logging, log_level_name, logging.INFO)
if not logging.getLogger().handlers:
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

logging.getLogger("course_assistant").setLevel(log_level)
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger("course_assistant.app")


def build_generator(settings: Settings) -> Optional[ReplyGenerator]:
    """Return a Gemini client, or None when the backend cannot be configured."""
    if not settings.backend_configured:
        logger.error("GEMINI_API_KEY is not set; generated replies are disabled")
        return None
    try:
        return GeminiClient(settings)
    except BackendNotConfigured as exc:
        logger.error("gemini backend not configured error=%s; generated replies are disabled", exc)
        return None


def create_app(
    settings: Optional[Settings] = None,
    catalog: Optional[CatalogStore] = None,
    generator: Optional[ReplyGenerator] = None,
    gateway: Optional[WhatsAppGateway] = None,
    store: Optional[ConversationStore] = None,
) -> FastAPI:
    """Purpose: Build the FastAPI app with its catalog, assistant, memory and gateway.
    Inputs/Outputs: Optional pre-built collaborators; returns a FastAPI instance.
    Side Effects / State: Reads the catalog and instruction files when not injected.
    Dependencies: load_settings, CatalogStore.load, GroundingContextBuilder,
        CourseAssistant, DeliveryAdapter, WhatsAppGateway.
    Failure Modes: Catalog/instruction read problems degrade with warnings; invalid
        numeric settings raise ValueError.
    If Removed: The service cannot start.
    Testing Notes: Inject a fake generator and gateway and use TestClient.
    """
    # Resolve collaborators, preferring injected ones.
    settings = settings or load_settings()
    catalog = catalog if catalog is not None else CatalogStore.load(settings.catalog_path)
    if generator is None:
        generator = build_generator(settings)
    if gateway is None:
        gateway = WhatsAppGateway(settings.gateway_url, settings.gateway_token, settings.gateway_timeout)
    if store is None:
        store = ConversationStore(history_limit=settings.history_limit, max_chars=settings.message_max_chars)

    builder = GroundingContextBuilder(
        instructions=load_instructions(settings.instructions_path),
        eligible_courses=catalog.eligible(),
        context_max_chars=settings.context_max_chars,
        context_fallback_courses=settings.context_fallback_courses,
        candidate_limit=settings.candidate_limit,
        history_limit=settings.history_limit,
        message_max_chars=settings.message_max_chars,
    )
    assistant = CourseAssistant(
        catalog=catalog,
        builder=builder,
        generator=generator,
        thresholds=settings.mention,
        message_max_chars=settings.message_max_chars,
    )
    adapter = DeliveryAdapter(assistant, store, gateway)
    if not gateway.configured:
        logger.warning("WHATSAPP_GATEWAY_URL is not set; replies are returned in the webhook response only")

    app = FastAPI(title="Course Assistant WhatsApp Bot")
    app.state.adapter = adapter

    @app.get("/health")
    def health() -> dict:
        return {
            "ok": True,
            "courses": len(catalog),
            "eligible": len(catalog.eligible()),
            "backend": assistant.backend_configured,
            **builder.describe(),
        }

    @app.post("/webhook/whatsapp", response_model=WebhookResponse)
    def whatsapp_webhook(event: InboundMessageEvent) -> WebhookResponse:
        """Receive one inbound message event from the gateway and answer it."""
        result = adapter.handle_event(event)
        return WebhookResponse(
            handled=result.handled,
            route=result.route,
            reply=result.reply,
            delivered=result.delivered,
        )

    @app.post("/send-message", response_model=StatusResponse)
    def send_message(request: SendMessageRequest) -> StatusResponse:
        """Send an operator message to a number through the gateway."""
        if not gateway.configured:
            raise HTTPException(status_code=503, detail="WhatsApp gateway is not configured")
        chat_id = format_chat_id(request.number)
        if not chat_id:
            raise HTTPException(status_code=422, detail="Invalid number")
        if not gateway.send_text(chat_id, request.message):
            raise HTTPException(status_code=502, detail="Message could not be delivered")
        return StatusResponse(status=True, message=f"sent to {chat_id}")

    @app.post("/clear-history", response_model=StatusResponse)
    def clear_history(request: ClearHistoryRequest) -> StatusResponse:
        """Forget a conversation's short-term memory."""
        conversation_id = request.conversation_id or format_chat_id(request.number or "")
        if not conversation_id:
            raise HTTPException(status_code=422, detail="number or conversationId is required")
        removed = store.clear(conversation_id)
        logger.info("conversation=%s history cleared=%s", conversation_id, removed)
        return StatusResponse(status=removed, message="cleared" if removed else "no history")

    @app.get("/api/conversations/{conversation_id}", response_model=ConversationResponse)
    def get_conversation(conversation_id: str) -> ConversationResponse:
        """Return the stored history and last suggested course for a chat."""
        return ConversationResponse(**store.snapshot(conversation_id))

    return app


app = create_app()
