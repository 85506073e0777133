import json

import httpx

from course_assistant.whatsapp_client import WhatsAppGateway


def make_gateway(handler, token="secreto"):
    return WhatsAppGateway("http://gateway.local/", token=token, timeout=5, transport=httpx.MockTransport(handler))


class TestSendText:
    def test_posts_chat_id_and_message(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"ok": True})

        assert make_gateway(handler).send_text("549388@c.us", "Hola") is True
        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == "http://gateway.local/send-message"
        assert request.headers["Authorization"] == "Bearer secreto"
        assert json.loads(request.content) == {"chatId": "549388@c.us", "message": "Hola"}

    def test_no_token_sends_no_auth_header(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(204)

        assert make_gateway(handler, token="").send_text("549388@c.us", "Hola") is True
        assert "Authorization" not in seen[0].headers

    def test_rejected_message(self, caplog):
        gateway = make_gateway(lambda request: httpx.Response(500, text="session closed"))
        with caplog.at_level("ERROR", logger="course_assistant.whatsapp"):
            assert gateway.send_text("549388@c.us", "Hola") is False
        assert "status=500" in caplog.text

    def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("gateway down", request=request)

        assert make_gateway(handler).send_text("549388@c.us", "Hola") is False

    def test_unconfigured_gateway(self):
        gateway = WhatsAppGateway("")
        assert gateway.configured is False
        assert gateway.send_text("549388@c.us", "Hola") is False

    def test_missing_arguments_skip_the_request(self):
        calls = []
        gateway = make_gateway(lambda request: calls.append(request) or httpx.Response(200))
        assert gateway.send_text("", "Hola") is False
        assert gateway.send_text("549388@c.us", "") is False
        assert calls == []
