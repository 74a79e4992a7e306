"""Cover art generation backed by Imagen."""

from __future__ import annotations

import base64
from typing import Any, Optional

from google import genai
from google.genai import types
from loguru import logger

from ..app.settings import Settings
from .exceptions import GenerationFailure, MissingCredentialError
from .gemini import ClientFactory


def _default_client_factory(api_key: str) -> Any:
    return genai.Client(api_key=api_key)


class ImagenService:
    def __init__(
        self,
        settings: Settings,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        self._settings = settings
        self._client_factory = client_factory or _default_client_factory

    async def generate_image(self, api_key: Optional[str], prompt: str) -> str:
        """Render one cover and return it as a PNG data url."""
        if not api_key:
            raise MissingCredentialError("API Key is required.")
        client = self._client_factory(api_key)
        model_id = self._settings.image_model_id
        config = types.GenerateImagesConfig(
            number_of_images=1,
            output_mime_type="image/png",
            aspect_ratio=self._settings.image_aspect_ratio,
        )
        logger.debug("Imagen request to {}: {!r}", model_id, prompt)
        try:
            response = await client.aio.models.generate_images(
                model=model_id,
                prompt=prompt,
                config=config,
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception("Error from Imagen API")
            raise GenerationFailure(f"Image generation failed: {exc}") from exc

        images = getattr(response, "generated_images", None) or []
        image = images[0].image if images else None
        image_bytes = getattr(image, "image_bytes", None) if image is not None else None
        if not image_bytes:
            logger.error("Imagen returned no images for prompt {!r}", prompt)
            raise GenerationFailure("Imagen API did not return any images.")
        logger.debug("Imagen response from {}: {} bytes", model_id, len(image_bytes))
        encoded = base64.b64encode(image_bytes).decode("ascii")
        return f"data:image/png;base64,{encoded}"
