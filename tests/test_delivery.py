from unittest.mock import Mock

import pytest

from course_assistant.assistant import CourseAssistant
from course_assistant.conversation_store import ConversationStore
from course_assistant.delivery import DeliveryAdapter
from course_assistant.models import InboundMessageEvent
from course_assistant.whatsapp_client import WhatsAppGateway
from tests.conftest import FakeGenerator

CHAT_ID = "5493881234567@c.us"


def make_event(**payload):
    data = {"conversationId": CHAT_ID, "senderIsSelf": False, "bodyText": "hola"}
    data.update(payload)
    return InboundMessageEvent.model_validate(data)


@pytest.fixture
def gateway():
    gateway = Mock(spec=WhatsAppGateway)
    gateway.configured = True
    gateway.send_text.return_value = True
    return gateway


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def adapter(catalog, builder, generator, gateway):
    assistant = CourseAssistant(catalog=catalog, builder=builder, generator=generator)
    return DeliveryAdapter(assistant, ConversationStore(), gateway)


class TestHandleEvent:
    def test_self_messages_are_ignored(self, adapter, generator, gateway):
        result = adapter.handle_event(make_event(senderIsSelf=True))
        assert result.handled is False
        assert generator.requests == []
        gateway.send_text.assert_not_called()
        assert len(adapter.store) == 0

    @pytest.mark.parametrize("body", ["", "   ", None])
    def test_blank_messages_are_ignored(self, adapter, gateway, body):
        assert adapter.handle_event(make_event(bodyText=body)).handled is False
        gateway.send_text.assert_not_called()

    def test_reply_is_sent_to_the_same_chat(self, adapter, gateway):
        result = adapter.handle_event(make_event(bodyText="quiero el curso de electricidad domiciliaria"))
        assert result.handled is True
        assert result.delivered is True
        assert result.route == "closed_state"
        gateway.send_text.assert_called_once_with(
            CHAT_ID, "El curso *Electricidad Domiciliaria* ya finalizó, no podés inscribirte."
        )

    def test_message_is_trimmed(self, adapter, generator):
        adapter.handle_event(make_event(bodyText="  hola  "))
        assert generator.requests[0].user_turn == "hola"

    def test_memory_is_kept_per_conversation(self, adapter):
        adapter.handle_event(make_event(bodyText="hola"))
        adapter.handle_event(make_event(conversationId="other@c.us", bodyText="buenas"))
        assert len(adapter.store.get(CHAT_ID).history) == 2
        assert adapter.store.get("other@c.us").history[0].text == "buenas"

    def test_send_failure_is_reported(self, adapter, gateway):
        gateway.send_text.return_value = False
        result = adapter.handle_event(make_event())
        assert result.handled is True
        assert result.delivered is False
        assert result.reply == "Respuesta generada."

    def test_unconfigured_gateway_skips_sending(self, catalog, builder):
        assistant = CourseAssistant(catalog=catalog, builder=builder, generator=FakeGenerator())
        adapter = DeliveryAdapter(assistant, ConversationStore(), WhatsAppGateway(""))
        result = adapter.handle_event(make_event())
        assert result.handled is True
        assert result.delivered is False

    def test_backend_failure_still_replies(self, catalog, builder, gateway):
        assistant = CourseAssistant(catalog=catalog, builder=builder, generator=FakeGenerator(error=RuntimeError()))
        adapter = DeliveryAdapter(assistant, ConversationStore(), gateway)
        result = adapter.handle_event(make_event())
        assert result.route == "backend_error"
        gateway.send_text.assert_called_once_with(CHAT_ID, "Ocurrió un error al generar la respuesta.")


class TestInboundMessageEvent:
    def test_gateway_aliases(self):
        event = InboundMessageEvent.model_validate({"from": CHAT_ID, "fromMe": True, "body": "hola"})
        assert event.conversation_id == CHAT_ID
        assert event.sender_is_self is True
        assert event.body_text == "hola"

    def test_defaults(self):
        event = InboundMessageEvent.model_validate({"chatId": CHAT_ID})
        assert event.sender_is_self is False
        assert event.body_text == ""
