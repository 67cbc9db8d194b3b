"""
Model Client Layer for Fusion Service

This module provides HTTP clients for the face, voice and text emotion
producer services. Each client returns one EmotionVector per call, or None
when the producer fails or has nothing to report for this tick.

All clients share one httpx.AsyncClient owned by ModalityClientPool, which
is created once at startup and closed on shutdown.
"""

import httpx
import logging
import time
from typing import Any, Dict, Optional

from pydantic import ValidationError

from fusion.blendshape_scorer import BlendshapeCoefficients, score_blendshapes
from fusion.models import EmotionVector, FaceDetectResponse
from fusion.normalizer import is_valid_emotion_vector

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 1.5


class BaseModalityClient:
    """Base class for modality producer clients with retry logic."""

    endpoint_path = "/predict"

    def __init__(self, http_client: httpx.AsyncClient, service_url: str, service_name: str, timeout: float = None):
        """
        Initialize base modality client.

        Args:
            http_client: Shared async HTTP client (owned by the caller)
            service_url: Base URL of the producer service
            service_name: Name of the service (for logging)
            timeout: Read timeout in seconds
        """
        self.http_client = http_client
        self.service_url = service_url.rstrip("/")
        self.service_name = service_name
        self.timeout = timeout or DEFAULT_TIMEOUT_SECONDS
        self.endpoint = f"{self.service_url}{self.endpoint_path}"

        logger.info(f"{service_name}Client initialized with URL: {self.endpoint}")

    def _build_payload(self) -> Dict[str, Any]:
        return {"timestamp": time.time()}

    def _parse(self, data: Dict[str, Any]) -> Optional[EmotionVector]:
        return EmotionVector(**data)

    async def produce(self) -> Optional[EmotionVector]:
        """
        Get one emotion vector from the producer service.

        Returns:
            EmotionVector, or None on failure / no detection
        """
        payload = self._build_payload()

        data = await self._make_request(payload)
        if data is None:
            # Retry once if first attempt failed
            logger.info(f"Retrying {self.service_name} request...")
            data = await self._make_request(payload)
        if data is None:
            logger.warning(f"{self.service_name} request failed after retry, no vector this tick")
            return None

        try:
            vector = self._parse(data)
        except (ValidationError, TypeError) as e:
            logger.warning(f"{self.service_name} returned a malformed payload: {e}")
            return None

        if vector is None:
            return None

        if not is_valid_emotion_vector(vector):
            logger.warning(
                f"{self.service_name} returned a vector that does not sum to 1 "
                f"(sum={sum(vector.emotions.values()):.4f}), rejecting"
            )
            return None

        return vector

    async def _make_request(self, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Make HTTP request to the producer service.

        Returns:
            Decoded JSON body if successful, None on failure
        """
        try:
            timeout_config = httpx.Timeout(
                connect=5.0,
                read=self.timeout,
                write=5.0,
                pool=5.0
            )
            response = await self.http_client.post(
                self.endpoint,
                json=payload,
                timeout=timeout_config
            )
            response.raise_for_status()
            return response.json()

        except httpx.TimeoutException:
            logger.warning(f"{self.service_name} request timed out after {self.timeout}s")
            return None
        except httpx.HTTPStatusError as e:
            logger.warning(f"{self.service_name} returned HTTP {e.response.status_code}: {e}")
            return None
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"{self.service_name} request failed: {e}")
            return None


class FaceClient(BaseModalityClient):
    """Client for the face landmark service; scores blendshapes locally."""

    endpoint_path = "/detect"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        service_url: str,
        timeout: Optional[float] = None,
        coefficients: Optional[BlendshapeCoefficients] = None
    ):
        super().__init__(http_client, service_url, "Face", timeout)
        self.coefficients = coefficients

    def _parse(self, data: Dict[str, Any]) -> Optional[EmotionVector]:
        detection = FaceDetectResponse(**data)
        if not detection.faces or not detection.faces[0].categories:
            logger.info("Face: no face detected this tick")
            return None
        return score_blendshapes(
            detection.faces[0].categories,
            timestamp=detection.timestamp,
            coefficients=self.coefficients
        )


class VoiceClient(BaseModalityClient):
    """Client for the voice emotion service."""

    def __init__(self, http_client: httpx.AsyncClient, service_url: str, timeout: Optional[float] = None):
        super().__init__(http_client, service_url, "Voice", timeout)


class TextClient(BaseModalityClient):
    """Client for the text emotion service. Sends the most recent input text."""

    def __init__(self, http_client: httpx.AsyncClient, service_url: str, timeout: Optional[float] = None):
        super().__init__(http_client, service_url, "Text", timeout)
        self.current_text = ""

    def set_text(self, text: str) -> None:
        self.current_text = text

    def _build_payload(self) -> Dict[str, Any]:
        payload = super()._build_payload()
        payload["text"] = self.current_text
        return payload


class ModalityClientPool:
    """
    Owns the shared HTTP client and the three producer clients.

    Use as an async context manager; the HTTP client is closed on exit.
    """

    def __init__(
        self,
        service_urls: Dict[str, str],
        timeout: Optional[float] = None,
        coefficients: Optional[BlendshapeCoefficients] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.service_urls = service_urls
        self.timeout = timeout
        self.coefficients = coefficients
        self.transport = transport
        self.http_client: Optional[httpx.AsyncClient] = None
        self.face: Optional[FaceClient] = None
        self.voice: Optional[VoiceClient] = None
        self.text: Optional[TextClient] = None

    async def __aenter__(self) -> "ModalityClientPool":
        self.http_client = httpx.AsyncClient(
            transport=self.transport,
            headers={"Content-Type": "application/json"}
        )
        self.face = FaceClient(self.http_client, self.service_urls["face"], self.timeout, self.coefficients)
        self.voice = VoiceClient(self.http_client, self.service_urls["voice"], self.timeout)
        self.text = TextClient(self.http_client, self.service_urls["text"], self.timeout)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self.http_client is not None:
            await self.http_client.aclose()
            logger.info("Modality client pool closed")
        self.http_client = None

    def producers(self) -> Dict[str, BaseModalityClient]:
        if self.http_client is None:
            raise RuntimeError("ModalityClientPool used outside of 'async with'")
        return {"face": self.face, "voice": self.voice, "text": self.text}
