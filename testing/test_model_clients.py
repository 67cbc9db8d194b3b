"""
Unit Tests: Modality Producer Clients

Runs the clients against the mock modality services in-process through
httpx.ASGITransport, so no server needs to be started.

Run with: pytest testing/test_model_clients.py -v
"""

import asyncio

import httpx
import pytest
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import mock_modality_services as mock_services
from fusion.model_clients import ModalityClientPool
from fusion.orchestrator import SamplingLoop


SERVICE_URLS = {
    "face": "http://mock/face",
    "voice": "http://mock/voice",
    "text": "http://mock/text",
}


@pytest.fixture(autouse=True)
def reset_mock_services():
    for modality in mock_services._service_states:
        mock_services._service_states[modality] = mock_services.MockScript()
    yield
    for modality in mock_services._service_states:
        mock_services._service_states[modality] = mock_services.MockScript()


def script(modality: str, **kwargs):
    mock_services._service_states[modality] = mock_services.MockScript(**kwargs)


def make_pool() -> ModalityClientPool:
    return ModalityClientPool(SERVICE_URLS, transport=httpx.ASGITransport(app=mock_services.app))


def produce(modality: str):
    async def scenario():
        async with make_pool() as pool:
            return await pool.producers()[modality].produce()
    return asyncio.run(scenario())


class TestVoiceAndTextClients:

    def test_random_vector_is_valid(self):
        vector = produce("voice")

        assert vector is not None
        assert sum(vector.emotions.values()) == pytest.approx(1.0)

    def test_scripted_vector(self):
        script("voice", emotions={"happy": 0.0, "sad": 1.0, "angry": 0.0, "surprised": 0.0, "neutral": 0.0})

        vector = produce("voice")

        assert vector.dominant() == "sad"

    def test_service_failure_returns_none(self):
        script("voice", fail=True)

        assert produce("voice") is None

    def test_unnormalized_vector_rejected(self):
        script("text", emotions={"happy": 0.5, "sad": 0.0, "angry": 0.0, "surprised": 0.0, "neutral": 0.0})

        assert produce("text") is None

    def test_malformed_vector_rejected(self):
        script("text", emotions={"happy": 1.0})

        assert produce("text") is None

    def test_text_client_sends_current_text(self):
        async def scenario():
            async with make_pool() as pool:
                pool.text.set_text("what a lovely day")
                return pool.text._build_payload(), await pool.text.produce()

        payload, vector = asyncio.run(scenario())

        assert payload["text"] == "what a lovely day"
        assert vector is not None


class TestFaceClient:

    def test_smile_scored_as_happy(self):
        script("face", categories=[
            {"categoryName": "mouthSmileLeft", "score": 0.9},
            {"categoryName": "mouthSmileRight", "score": 0.9},
        ])

        vector = produce("face")

        assert vector.dominant() == "happy"

    def test_no_face_returns_none(self):
        script("face", no_face=True)

        assert produce("face") is None

    def test_empty_categories_return_none(self):
        script("face", categories=[])

        assert produce("face") is None

    def test_random_blendshapes_are_scored(self):
        vector = produce("face")

        assert vector is not None
        assert sum(vector.emotions.values()) == pytest.approx(1.0)


class TestClientPool:

    def test_producers_outside_context_rejected(self):
        with pytest.raises(RuntimeError):
            make_pool().producers()

    def test_client_closed_on_exit(self):
        async def scenario():
            pool = make_pool()
            async with pool:
                http_client = pool.http_client
            return pool, http_client

        pool, http_client = asyncio.run(scenario())

        assert pool.http_client is None
        assert http_client.is_closed

    def test_sampling_loop_over_mock_services(self):
        script("face", no_face=True)

        async def scenario():
            async with make_pool() as pool:
                loop = SamplingLoop(pool.producers(), {"face": 0.4, "voice": 0.3, "text": 0.3}, log_activity=False)
                dropped = await loop.run_tick()
                mock_services._service_states["face"] = mock_services.MockScript()
                fused = await loop.run_tick()
                return loop, dropped, fused

        loop, dropped, fused = asyncio.run(scenario())

        assert dropped is None
        assert fused is not None
        assert len(loop.window) == 1
