from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import AliasChoices, BaseModel, Field


class InboundMessageEvent(BaseModel):
    """Message event posted by the WhatsApp gateway."""
    conversation_id: str = Field(
        validation_alias=AliasChoices("conversationId", "conversation_id", "from", "chatId")
    )
    sender_is_self: bool = Field(
        default=False, validation_alias=AliasChoices("senderIsSelf", "sender_is_self", "fromMe")
    )
    body_text: Optional[str] = Field(default="", validation_alias=AliasChoices("bodyText", "body_text", "body"))


class WebhookResponse(BaseModel):
    """Result of handling one inbound event."""
    handled: bool
    route: Optional[str] = None
    reply: Optional[str] = None
    delivered: bool = False


class SendMessageRequest(BaseModel):
    number: str = Field(min_length=1)
    message: str = Field(min_length=1)


class ClearHistoryRequest(BaseModel):
    number: Optional[str] = None
    conversation_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("conversationId", "conversation_id")
    )


class StatusResponse(BaseModel):
    status: bool
    message: str


class HistoryItem(BaseModel):
    role: str
    text: str


class ConversationResponse(BaseModel):
    """Conversation memory snapshot for operators."""
    conversation_id: str
    history: List[HistoryItem]
    last_suggested_course: Optional[Dict[str, str]] = None
