"""Tests for the webhook HTTP surface."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from zapchat.api.deps import get_message_handler, get_whatsapp_config
from zapchat.api.webhook import router
from zapchat.configs.system import WhatsAppConfig


class RecordingHandler:
    def __init__(self) -> None:
        self.events = []

    async def handle(self, event) -> None:
        self.events.append(event)


@pytest.fixture
def handler():
    return RecordingHandler()


@pytest.fixture
def client(handler):
    app = FastAPI()
    app.include_router(router)
    app.dependency_overrides[get_message_handler] = lambda: handler
    app.dependency_overrides[get_whatsapp_config] = lambda: WhatsAppConfig(
        verify_token="s3cret"
    )
    return TestClient(app)


class TestWebhookApi:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_verification_echoes_challenge(self, client):
        response = client.get(
            "/webhook",
            params={
                "hub.mode": "subscribe",
                "hub.verify_token": "s3cret",
                "hub.challenge": "1158201444",
            },
        )
        assert response.status_code == 200
        assert response.text == "1158201444"

    @pytest.mark.parametrize(
        "params",
        [
            {"hub.mode": "subscribe", "hub.verify_token": "wrong", "hub.challenge": "1"},
            {"hub.mode": "unsubscribe", "hub.verify_token": "s3cret", "hub.challenge": "1"},
            {},
        ],
    )
    def test_verification_rejected(self, client, params):
        assert client.get("/webhook", params=params).status_code == 403

    def test_inbound_messages_are_dispatched(self, client, handler):
        payload = {
            "entry": [
                {
                    "changes": [
                        {
                            "field": "messages",
                            "value": {
                                "messages": [
                                    {
                                        "from": "5511",
                                        "id": "wamid.1",
                                        "type": "text",
                                        "text": {"body": "oi"},
                                    },
                                    {"from": "5522", "id": "wamid.2", "type": "audio"},
                                ]
                            },
                        }
                    ]
                }
            ]
        }

        response = client.post("/webhook", json=payload)

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
        assert [e.conversation_id for e in handler.events] == ["5511", "5522"]
        assert handler.events[1].has_attachment

    def test_status_only_payload(self, client, handler):
        response = client.post("/webhook", json={"entry": []})
        assert response.status_code == 200
        assert handler.events == []
