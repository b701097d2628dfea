"""Gemini REST client implementing the generative capability."""

import asyncio
import json
import time
from typing import Any, Dict, List, Optional, Tuple

import httpx

from .base import BaseProvider
from .generative import GenerativeService
from ..models.enums import AnimationTemplate
from ..models.schemas import AnalysisResult, Coordinates, EditPlan
from ..utils.errors import (
    AuthenticationError,
    ImageProcessingError,
    NoOutputProduced,
    PermanentExternalFailure,
    RateLimitError,
    TransientExternalFailure,
)
from ..utils.images import (
    bytes_to_data_url,
    detect_mime_type,
    extract_base64_data,
    get_mime_type,
    is_data_url,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)

PROVIDER = "gemini"

TRANSIENT_STATUS_CODES = {500, 502, 503, 504}

ANALYSIS_PROMPT = """
Analyze this real estate image for an MLS listing.
Identify the room type.
Rate quality 0-100 (lighting, composition).
Assess lighting (Natural, Artificial, Dark, HDR).
Determine clutter level (Low, Medium, High).
List MLS compliance issues (people, license plates, text overlays).
Write a 1-sentence marketing description.
Suggest 3 specific edits to improve value.
"""

ANALYSIS_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "roomType": {"type": "STRING"},
        "qualityScore": {"type": "INTEGER"},
        "lighting": {"type": "STRING"},
        "clutterLevel": {"type": "STRING", "enum": ["Low", "Medium", "High"]},
        "complianceIssues": {"type": "ARRAY", "items": {"type": "STRING"}},
        "marketingDescription": {"type": "STRING"},
        "suggestedEdits": {"type": "ARRAY", "items": {"type": "STRING"}},
    },
    "required": [
        "roomType", "qualityScore", "lighting", "clutterLevel",
        "complianceIssues", "marketingDescription",
    ],
}

MASK_PROMPT = """
Look at the object located at relative coordinates X={x:.2f}, Y={y:.2f} (where 0,0 is top-left and 1,1 is bottom-right).
Generate a precise black-and-white segmentation mask for this object.
The object should be pure WHITE. The background should be pure BLACK.
Do not include any gray areas or text.
"""

# template -> (prompt, aspect ratio)
VIDEO_TEMPLATES = {
    AnimationTemplate.PAN: (
        "Cinematic slow pan across this real estate room, 4k, smooth motion, "
        "professional architectural videography.",
        "16:9",
    ),
    AnimationTemplate.REVEAL: (
        "Slow zoom in revealing the details of this luxury room, elegant motion, photorealistic.",
        "16:9",
    ),
    AnimationTemplate.REEL: (
        "Vertical video, slow smooth camera movement upwards showing the space from floor "
        "to ceiling, social media reel style.",
        "9:16",
    ),
}


class GeminiClient(BaseProvider, GenerativeService):
    """Client for the Gemini API (image editing, vision, Veo video)."""

    provider_name = PROVIDER

    def __init__(
        self,
        api_key: str,
        timeout: float = 120.0,
        editing_model: str = "gemini-2.5-flash-image",
        vision_model: str = "gemini-3-pro-preview",
        video_model: str = "veo-3.1-fast-generate-preview",
        poll_interval: float = 5.0,
        max_wait: float = 600.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(
            api_key=api_key,
            base_url="https://generativelanguage.googleapis.com/v1beta",
            timeout=timeout,
            transport=transport,
        )
        self.editing_model = editing_model
        self.vision_model = vision_model
        self.video_model = video_model
        self.poll_interval = poll_interval
        self.max_wait = max_wait

    def _get_default_headers(self) -> dict:
        return {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }

    # ------------------------------------------------------------------
    # Capability calls
    # ------------------------------------------------------------------

    async def execute_edit(self, image_url: str, mime_type: str, plan: EditPlan) -> str:
        parts = [await self._image_part(image_url, mime_type)]

        # Mask / reference images go second, before the text prompt
        for image in plan.auxiliary_images:
            parts.append(await self._image_part(image.data, image.mime_type))

        parts.append({"text": plan.user_prompt})

        payload = {
            "contents": [{"role": "user", "parts": parts}],
            "systemInstruction": {"parts": [{"text": plan.system_instruction}]},
            "generationConfig": {"responseModalities": ["IMAGE"]},
        }

        logger.info(
            f"Submitting edit to {plan.model_selector or self.editing_model}",
            extra={
                "model": plan.model_selector or self.editing_model,
                "prompt": plan.user_prompt[:100],
                "auxiliary_images": len(plan.auxiliary_images),
            }
        )

        data = await self._generate_content(plan.model_selector or self.editing_model, payload)
        return self._first_image(data, "No image generated")

    async def generate_object_mask(
        self, image_url: str, mime_type: str, coordinates: Coordinates
    ) -> str:
        payload = {
            "contents": [{
                "role": "user",
                "parts": [
                    await self._image_part(image_url, mime_type),
                    {"text": MASK_PROMPT.format(x=coordinates.x, y=coordinates.y)},
                ],
            }],
            "generationConfig": {"responseModalities": ["IMAGE"]},
        }

        data = await self._generate_content(self.editing_model, payload)
        return self._first_image(data, "Failed to generate object mask")

    async def analyze_image(self, image_url: str, mime_type: str) -> AnalysisResult:
        payload = {
            "contents": [{
                "role": "user",
                "parts": [
                    await self._image_part(image_url, mime_type),
                    {"text": ANALYSIS_PROMPT},
                ],
            }],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": ANALYSIS_SCHEMA,
            },
        }

        data = await self._generate_content(self.vision_model, payload)

        text = "".join(part.get("text", "") for part in self._parts(data))
        if not text.strip():
            raise NoOutputProduced(PROVIDER, "No analysis data returned")

        try:
            return AnalysisResult.model_validate(json.loads(text))
        except (json.JSONDecodeError, ValueError) as e:
            raise PermanentExternalFailure(PROVIDER, f"Unreadable analysis response: {e}")

    async def generate_video(
        self, image_url: str, mime_type: str, template: AnimationTemplate
    ) -> str:
        self._ensure_client()

        prompt, aspect_ratio = VIDEO_TEMPLATES[AnimationTemplate(template)]
        image = await self._image_part(image_url, mime_type)

        payload = {
            "instances": [{
                "prompt": prompt,
                "image": {
                    "bytesBase64Encoded": image["inlineData"]["data"],
                    "mimeType": image["inlineData"]["mimeType"],
                },
            }],
            "parameters": {
                "aspectRatio": aspect_ratio,
                "resolution": "720p",
                "sampleCount": 1,
            },
        }

        response = await self._request(
            "POST", f"models/{self.video_model}:predictLongRunning", json=payload
        )
        operation = response.json()
        operation_name = operation.get("name")
        if not operation_name:
            raise NoOutputProduced(PROVIDER, "No operation name in video response")

        logger.info(
            f"Video job submitted: {operation_name}",
            extra={"model": self.video_model, "template": AnimationTemplate(template).value}
        )

        operation = await self._poll_operation(operation_name)

        samples = (
            operation.get("response", {})
            .get("generateVideoResponse", {})
            .get("generatedSamples", [])
        )
        uri = samples[0].get("video", {}).get("uri") if samples else None
        if not uri:
            raise NoOutputProduced(PROVIDER, "Video generation completed but URI missing")

        content, mime_type = await self._fetch_video(uri)
        logger.info(
            "Video generated",
            extra={"operation": operation_name, "uri": uri, "size_bytes": len(content)}
        )
        return bytes_to_data_url(content, mime_type)

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    async def _generate_content(self, model: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = await self._request(
            "POST", f"models/{model}:generateContent", json=payload
        )
        return response.json()

    async def _poll_operation(self, operation_name: str) -> Dict[str, Any]:
        start_time = time.monotonic()

        while time.monotonic() - start_time < self.max_wait:
            response = await self._request("GET", operation_name)
            operation = response.json()

            if operation.get("done"):
                if "error" in operation:
                    message = operation["error"].get("message", "Unknown error")
                    raise PermanentExternalFailure(PROVIDER, f"Video generation failed: {message}")
                return operation

            logger.debug("Video job still running", extra={"operation": operation_name})
            await asyncio.sleep(self.poll_interval)

        raise PermanentExternalFailure(
            PROVIDER, f"Video generation timed out after {self.max_wait}s"
        )

    async def _fetch_video(self, uri: str) -> Tuple[bytes, str]:
        """Download a generated video. The file URI only serves keyed requests."""
        self._ensure_client()
        try:
            response = await self.client.get(uri, follow_redirects=True)
        except httpx.TransportError as e:
            raise TransientExternalFailure(PROVIDER, f"Video download failed: {e}")

        self._handle_response_errors(response)
        if not response.content:
            raise NoOutputProduced(PROVIDER, "Generated video is empty")

        mime_type = response.headers.get("Content-Type", "").split(";")[0].strip()
        if not mime_type.startswith("video/"):
            mime_type = "video/mp4"
        return response.content, mime_type

    def _handle_response_errors(self, response: httpx.Response):
        """Map HTTP failures onto the transient/permanent taxonomy."""
        if response.status_code < 400:
            return

        if response.status_code in (401, 403):
            raise AuthenticationError(PROVIDER, response.status_code)

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(PROVIDER, int(retry_after) if retry_after and retry_after.isdigit() else None)

        try:
            error = response.json().get("error", {})
            message = error.get("message", response.text)
            status = error.get("status", "")
        except ValueError:
            message, status = response.text, ""

        logger.error(
            f"Gemini request failed: {response.status_code}",
            extra={"status": response.status_code, "error_status": status, "response": message[:500]}
        )

        if (
            response.status_code in TRANSIENT_STATUS_CODES
            or status in ("RESOURCE_EXHAUSTED", "UNAVAILABLE")
            or "quota" in message.lower()
        ):
            raise TransientExternalFailure(PROVIDER, message, response.status_code)

        raise PermanentExternalFailure(PROVIDER, message, response.status_code)

    async def _image_part(self, image_url: str, mime_type: Optional[str]) -> Dict[str, Any]:
        """Inline-data part for a data URL or a downloadable image URL."""
        if is_data_url(image_url):
            return {
                "inlineData": {
                    "mimeType": get_mime_type(image_url, mime_type or "image/png"),
                    "data": extract_base64_data(image_url),
                }
            }

        content = await self._download(image_url)
        data_url = bytes_to_data_url(content, detect_mime_type(content))
        return {
            "inlineData": {
                "mimeType": get_mime_type(data_url),
                "data": extract_base64_data(data_url),
            }
        }

    async def _download(self, image_url: str) -> bytes:
        # Separate client so the API key is never sent to image hosts
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as downloader:
            try:
                response = await downloader.get(image_url, follow_redirects=True)
                response.raise_for_status()
            except httpx.TransportError as e:
                raise TransientExternalFailure(PROVIDER, f"Image host unavailable: {e}")
            except httpx.HTTPStatusError as e:
                raise ImageProcessingError(f"Failed to download source image: {e}")

        logger.debug(
            "Source image downloaded",
            extra={"url": image_url, "size_bytes": len(response.content)}
        )
        return response.content

    @staticmethod
    def _parts(data: Dict[str, Any]) -> List[Dict[str, Any]]:
        candidates = data.get("candidates") or []
        if not candidates:
            return []
        return (candidates[0].get("content") or {}).get("parts") or []

    def _first_image(self, data: Dict[str, Any], error_message: str) -> str:
        for part in self._parts(data):
            inline = part.get("inlineData") or part.get("inline_data")
            if inline and inline.get("data"):
                mime_type = inline.get("mimeType") or inline.get("mime_type") or "image/png"
                return f"data:{mime_type};base64,{inline['data']}"
        raise NoOutputProduced(PROVIDER, error_message)
