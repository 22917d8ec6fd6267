"""Shared pytest fixtures for invite_studio tests."""

from io import BytesIO
from typing import Dict, List, Optional

import pytest
from PIL import Image

from invite_studio.config import Settings
from invite_studio.models import (
    Artifact,
    ArtifactKind,
    ArtifactVersion,
    GeneratedImage,
    GenerationResult,
    ImageAsset,
    ImageFormat,
)
from invite_studio.prompts import GenerationRequest, RequestKind
from invite_studio.studio import Studio


def make_image_bytes(fmt: str = "PNG", size=(64, 48), color=(200, 30, 60, 255)) -> bytes:
    mode = "RGBA" if fmt == "PNG" else "RGB"
    if mode == "RGB":
        color = color[:3]
    buffer = BytesIO()
    Image.new(mode, size, color).save(buffer, format=fmt)
    return buffer.getvalue()


def image_result(text: Optional[str] = None, color=(10, 120, 200, 255)) -> GenerationResult:
    return GenerationResult(image=GeneratedImage(data=make_image_bytes(color=color), mime_type="image/png"), text=text)


def make_version(title: str = "Couple Illustration", fmt: ImageFormat = ImageFormat.JPEG, quality: float = 0.9) -> ArtifactVersion:
    raw = make_image_bytes()
    encoded = make_image_bytes("PNG" if fmt is ImageFormat.PNG else "JPEG")
    image = ImageAsset(
        raw_bytes=raw,
        raw_size=len(raw),
        encoded_bytes=encoded,
        encoded_size=len(encoded),
        encoded_format=fmt,
    )
    return ArtifactVersion(title=title, image=image, quality_factor=quality)


def make_artifact(kind: ArtifactKind = ArtifactKind.COUPLE, fmt: ImageFormat = ImageFormat.PNG) -> Artifact:
    return Artifact.create(kind, make_version(kind.title, fmt))


class FakeProvider:
    """Replays scripted results per request kind.

    A scripted value may be a GenerationResult, an exception to raise, or a
    list of those consumed in order. Unscripted kinds return a fresh image.
    """

    def __init__(self, responses: Optional[Dict[RequestKind, object]] = None):
        self.responses = dict(responses or {})
        self.requests: List[GenerationRequest] = []

    async def request_image_edit(self, request: GenerationRequest) -> GenerationResult:
        self.requests.append(request)
        response = self.responses.get(request.kind)
        if isinstance(response, list):
            response = response.pop(0)
        if response is None:
            return image_result()
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def kinds(self) -> List[RequestKind]:
        return [request.kind for request in self.requests]


@pytest.fixture
def png_bytes() -> bytes:
    return make_image_bytes("PNG")


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_image_bytes("JPEG")


@pytest.fixture
def settings() -> Settings:
    return Settings(gemini_api_key=None)


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def studio(fake_provider: FakeProvider, settings: Settings) -> Studio:
    return Studio(fake_provider, settings)
