"""Image generation provider backed by Gemini's multimodal image model."""

import logging
from io import BytesIO
from typing import Any, List, Optional, Protocol, runtime_checkable

import google.generativeai as genai
from PIL import Image

from .config import Settings, get_settings
from .models import GeneratedImage, GenerationResult
from .prompts import GenerationRequest

logger = logging.getLogger(__name__)


@runtime_checkable
class ImageProvider(Protocol):
    async def request_image_edit(self, request: GenerationRequest) -> GenerationResult:
        """Send one prompt plus images; resolve with the image and/or text returned."""
        ...


def parse_response(response: Any) -> GenerationResult:
    """Take the first inline image of the first candidate and join its text parts."""
    image = None
    texts: List[str] = []

    candidates = getattr(response, "candidates", None) or []
    if candidates:
        content = getattr(candidates[0], "content", None)
        for part in getattr(content, "parts", None) or []:
            inline_data = getattr(part, "inline_data", None)
            if inline_data and getattr(inline_data, "data", None) and image is None:
                image = GeneratedImage(data=inline_data.data, mime_type=inline_data.mime_type or "image/png")
            elif getattr(part, "text", None):
                texts.append(part.text)

    block_reason = None
    if image is None:
        feedback = getattr(response, "prompt_feedback", None)
        reason = getattr(feedback, "block_reason", None) if feedback else None
        if reason:
            block_reason = getattr(reason, "name", str(reason))

    return GenerationResult(image=image, text="\n".join(texts).strip() or None, block_reason=block_reason)


class GeminiImageProvider:
    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._model = None

    def _get_model(self):
        if self._model is None:
            if not self.settings.gemini_api_key:
                raise RuntimeError("GEMINI_API_KEY not set in .env file")
            genai.configure(api_key=self.settings.gemini_api_key)
            self._model = genai.GenerativeModel(model_name=self.settings.image_model)
        return self._model

    async def request_image_edit(self, request: GenerationRequest) -> GenerationResult:
        model = self._get_model()
        contents: List[Any] = [request.prompt]
        contents += [Image.open(BytesIO(image.data)) for image in request.images]

        logger.info("Sending %s request with %d image(s)", request.kind.value, len(request.images))
        response = await model.generate_content_async(
            contents,
            generation_config={"temperature": self.settings.temperature, "candidate_count": 1},
        )
        result = parse_response(response)
        if result.image is None:
            logger.warning(
                "%s request returned no image (block reason: %s)",
                request.kind.value,
                result.block_reason or "Unknown",
            )
        return result
