"""Dr. Ava: prompt building, Gemini fallbacks, speech and the chat endpoint"""

import base64

import httpx
import pytest

from conftest import VendorTransport
from services.gemini_service import (
    FALLBACK_RESPONSE,
    IMAGE_FALLBACK_RESPONSE,
    ConversationTurn,
    GeminiService,
    build_prompt,
    detect_image_mime_type,
)
from services.speech_service import NO_SPEECH_DETECTED, TRANSCRIPTION_UNAVAILABLE, SpeechService

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


class TestPrompt:

    def test_history_and_new_message(self):
        prompt = build_prompt(
            "It still hurts",
            [ConversationTurn("user", "My knee hurts"), ConversationTurn("model", "Since when?")],
        )
        assert prompt.startswith("You are Dr. Ava")
        assert "Previous conversation:\nPatient: My knee hurts\nDr. Ava: Since when?\n" in prompt
        assert prompt.endswith("Patient: It still hurts\nDr. Ava:")

    def test_voice_and_image_notes(self):
        assert "voice message" not in build_prompt("hi")
        assert "voice message" in build_prompt("hi", is_voice_message=True)
        assert "shared an image" in build_prompt("hi", has_image=True)

    @pytest.mark.parametrize("data, expected", [
        (b"\xff\xd8\xff\xe0" + b"\x00" * 16, "image/jpeg"),
        (PNG_BYTES, "image/png"),
        (b"GIF89a" + b"\x00" * 16, "image/gif"),
        (b"RIFF\x00\x00\x00\x00WEBPVP8 ", "image/webp"),
        (b"not an image at all", "image/jpeg"),
    ])
    def test_mime_detection(self, data, expected):
        assert detect_image_mime_type(b64(data)) == expected

    def test_mime_detection_tolerates_garbage(self):
        assert detect_image_mime_type("%%%not-base64%%%") == "image/jpeg"


class TestGeminiFallbacks:

    def test_reply_text_is_returned(self, gemini_client):
        gemini = GeminiService(None, client=gemini_client)
        assert gemini.generate_response("I have a cold") == "Please rest and drink fluids."
        assert "Patient: I have a cold" in gemini_client.models.calls[0]["contents"]

    def test_vendor_error_falls_back(self, gemini_client):
        gemini_client.models.error = RuntimeError("quota exceeded")
        gemini = GeminiService(None, client=gemini_client)
        assert gemini.generate_response("hello") == FALLBACK_RESPONSE
        assert gemini.analyze_image(b64(PNG_BYTES), "what is this?") == IMAGE_FALLBACK_RESPONSE

    def test_empty_reply_falls_back(self, gemini_client):
        gemini_client.models.reply = None
        gemini = GeminiService(None, client=gemini_client)
        assert gemini.generate_response("hello") == FALLBACK_RESPONSE

    def test_unconfigured_service(self):
        gemini = GeminiService(None)
        assert not gemini.is_configured()
        assert gemini.generate_response("hello") == FALLBACK_RESPONSE


class TestSpeech:

    @pytest.mark.anyio
    async def test_synthesize(self):
        transport = VendorTransport(lambda request: httpx.Response(200, content=b"mp3-bytes"))
        async with transport.client() as http:
            speech = SpeechService("xi-key", "voice-1", http, "https://speech.test")
            assert await speech.synthesize("Hello there") == b"mp3-bytes"

        request = transport.requests[0]
        assert request.url.path == "/v1/text-to-speech/voice-1"
        assert request.headers["xi-api-key"] == "xi-key"

    @pytest.mark.anyio
    async def test_synthesize_failure_returns_none(self):
        transport = VendorTransport()
        async with transport.client() as http:
            speech = SpeechService("xi-key", "voice-1", http)
            assert await speech.synthesize("Hello there") is None

    @pytest.mark.anyio
    async def test_transcribe(self):
        transport = VendorTransport(lambda request: httpx.Response(200, json={"text": "  I feel dizzy "}))
        async with transport.client() as http:
            speech = SpeechService("xi-key", "voice-1", http)
            assert await speech.transcribe(b"audio") == "I feel dizzy"

    @pytest.mark.anyio
    async def test_transcribe_silence(self):
        transport = VendorTransport(lambda request: httpx.Response(200, json={"text": ""}))
        async with transport.client() as http:
            speech = SpeechService("xi-key", "voice-1", http)
            assert await speech.transcribe(b"audio") == NO_SPEECH_DETECTED

    @pytest.mark.anyio
    async def test_no_key_means_no_calls(self):
        transport = VendorTransport()
        async with transport.client() as http:
            speech = SpeechService(None, "voice-1", http)
            assert await speech.synthesize("Hello") is None
            assert await speech.transcribe(b"audio") == TRANSCRIPTION_UNAVAILABLE
        assert transport.requests == []


class TestChatEndpoint:

    def test_turn_is_stored_in_new_session(self, client, patient):
        response = client.post("/api/assistant/chat", headers=patient["headers"], json={"message": "I have a cold"})
        assert response.status_code == 200
        body = response.json()
        assert body["user_message"]["type"] == "user"
        assert body["ai_message"]["content"] == "Please rest and drink fluids."
        assert body["audio_base64"] is None

        detail = client.get(f"/api/chat/sessions/{body['session_id']}", headers=patient["headers"]).json()
        assert [m["content"] for m in detail["messages"]] == ["I have a cold", "Please rest and drink fluids."]

    def test_history_is_fed_back(self, client, gemini_client, patient):
        first = client.post("/api/assistant/chat", headers=patient["headers"], json={"message": "My head hurts"})
        session_id = first.json()["session_id"]

        client.post(
            "/api/assistant/chat",
            headers=patient["headers"],
            json={"message": "Still hurts", "session_id": session_id},
        )
        prompt = gemini_client.models.calls[-1]["contents"]
        assert "Patient: My head hurts" in prompt
        assert "Dr. Ava: Please rest and drink fluids." in prompt

    def test_image_uses_uploaded_content_type(self, client, gemini_client, patient):
        upload = client.post(
            "/api/storage/images",
            headers=patient["headers"],
            files={"file": ("rash.png", PNG_BYTES, "image/png")},
        )
        assert upload.status_code == 201
        key = upload.json()["key"]

        response = client.post(
            "/api/assistant/chat",
            headers=patient["headers"],
            json={"message": "What is this rash?", "image_key": key},
        )
        assert response.status_code == 200
        assert response.json()["user_message"]["image_url"] == key
        assert response.json()["user_message"]["image_content_type"] == "image/png"

        contents = gemini_client.models.calls[-1]["contents"]
        assert contents[1].inline_data.mime_type == "image/png"
        assert contents[1].inline_data.data == PNG_BYTES

    def test_unknown_session(self, client, patient):
        response = client.post(
            "/api/assistant/chat",
            headers=patient["headers"],
            json={"message": "hi", "session_id": 9999},
        )
        assert response.status_code == 404

    def test_transcribe_without_key(self, client, patient):
        response = client.post(
            "/api/assistant/transcribe",
            headers=patient["headers"],
            files={"audio": ("note.webm", b"\x1a\x45\xdf\xa3", "audio/webm")},
        )
        assert response.status_code == 200
        assert response.json()["text"] == TRANSCRIPTION_UNAVAILABLE
