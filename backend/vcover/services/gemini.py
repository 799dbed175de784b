from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import dataclass, field
from typing import Protocol

from google import genai
from google.genai import types

from ..media import CoverImage, ExtractedFrame, ImagePayload
from .cover_prompts import build_generation_prompt, build_planning_prompt

logger = logging.getLogger(__name__)

PLANNING_MODEL = "gemini-3-flash-preview"
GENERATION_MODEL = "gemini-2.5-flash-image"
COVER_ASPECT_RATIO = "9:16"


class GeminiServiceError(Exception):
  """Raised when Gemini requests fail."""

  def __init__(self, message: str, original_error: Exception | None = None, is_quota_error: bool = False, retry_after: float | None = None):
    super().__init__(message)
    self.original_error = original_error
    self.is_quota_error = is_quota_error
    self.retry_after = retry_after


class PlanningError(GeminiServiceError):
  """The layout planning call failed."""


class GenerationError(GeminiServiceError):
  """The cover generation call failed."""


class EmptyResultError(GenerationError):
  """The generation call succeeded but returned no image."""


def _is_quota_error(error: Exception) -> tuple[bool, float | None]:
  """Check if error is a quota/rate limit error and extract the advertised retry delay."""
  error_str = str(error).lower()
  error_repr = repr(error).lower()

  is_quota = any(
    marker in text
    for marker in ("429", "quota", "resource_exhausted", "rate limit")
    for text in (error_str, error_repr)
  )
  if not is_quota:
    return False, None

  # Look for patterns like "Please retry in 19.907498206s" or "retryDelay": "19s"
  retry_patterns = [
    r"retry in ([\d.]+)s",
    r"retrydelay['\"]?\s*:\s*['\"]?(\d+)s",
  ]
  full_error_text = f"{error_str} {error_repr}"
  for pattern in retry_patterns:
    match = re.search(pattern, full_error_text, re.IGNORECASE)
    if match:
      try:
        return True, float(match.group(1))
      except ValueError:
        continue

  return True, None


@dataclass(frozen=True, slots=True)
class InferenceRequest:
  model: str
  image: ImagePayload
  text: str
  aspect_ratio: str | None = None


@dataclass(slots=True)
class InferenceResponse:
  text: str | None = None
  images: list[ImagePayload] = field(default_factory=list)


class InferenceAdapter(Protocol):
  """A single multimodal request/response round trip."""

  async def invoke(self, request: InferenceRequest) -> InferenceResponse:
    ...


@dataclass
class GeminiInferenceAdapter:
  """Thin transport over the google-genai async client.

  The client is built on first use so that a missing credential surfaces as a
  failed call instead of a construction error. With no key here or in the
  environment, `genai.Client` raises ValueError locally and nothing is sent;
  that error is wrapped in GeminiServiceError like any transport failure.
  """

  api_key: str
  _client: genai.Client | None = field(default=None, init=False, repr=False)

  @property
  def client(self) -> genai.Client:
    if self._client is None:
      self._client = genai.Client(api_key=self.api_key)
    return self._client

  async def invoke(self, request: InferenceRequest) -> InferenceResponse:
    contents = types.Content(parts=[
      types.Part(
        inline_data=types.Blob(
          data=request.image.data,
          mime_type=request.image.mime_type,
        )
      ),
      types.Part(text=request.text),
    ])

    config = None
    if request.aspect_ratio:
      config = types.GenerateContentConfig(
        image_config=types.ImageConfig(aspect_ratio=request.aspect_ratio),
      )

    try:
      response = await self.client.aio.models.generate_content(
        model=request.model,
        contents=contents,
        config=config,
      )
    except Exception as error:
      is_quota, retry_after = _is_quota_error(error)
      if is_quota:
        logger.warning("Gemini quota error for model %s (retry_after=%s): %s", request.model, retry_after, error)
      raise GeminiServiceError(
        f"Gemini request to {request.model} failed: {error}",
        original_error=error,
        is_quota_error=is_quota,
        retry_after=retry_after,
      ) from error

    return to_inference_response(response)


def to_inference_response(response: types.GenerateContentResponse) -> InferenceResponse:
  """Flatten the first candidate's parts into text and inline images."""
  candidates = getattr(response, "candidates", None) or []
  if not candidates or not candidates[0].content:
    return InferenceResponse()

  texts: list[str] = []
  images: list[ImagePayload] = []
  for part in candidates[0].content.parts or []:
    if part.text and not part.thought:
      texts.append(part.text)
    inline_data = part.inline_data
    if inline_data is None or not inline_data.data:
      continue
    data = inline_data.data
    if isinstance(data, str):
      try:
        data = base64.b64decode(data)
      except (binascii.Error, ValueError):
        logger.warning("Skipping inline part with undecodable base64 payload")
        continue
    images.append(ImagePayload(mime_type=inline_data.mime_type or "image/png", data=data))

  return InferenceResponse(text="".join(texts) if texts else None, images=images)


@dataclass
class PlanningCallAdapter:
  inference: InferenceAdapter
  model: str = PLANNING_MODEL

  async def plan_layout(self, frame: ExtractedFrame, style: str) -> str:
    """Ask the vision model for a typography and layout plan for `frame`."""
    request = InferenceRequest(model=self.model, image=frame, text=build_planning_prompt(style))
    logger.info("Calling Gemini for layout planning with model: %s", self.model)
    try:
      response = await self.inference.invoke(request)
    except GeminiServiceError as error:
      raise PlanningError(
        f"Layout planning failed: {error}",
        original_error=error.original_error or error,
        is_quota_error=error.is_quota_error,
        retry_after=error.retry_after,
      ) from error
    except Exception as error:
      raise PlanningError(f"Layout planning failed: {error}", original_error=error) from error

    plan = response.text or ""
    logger.info(f"Layout plan received ({len(plan)} chars)")
    return plan


@dataclass
class GenerationCallAdapter:
  inference: InferenceAdapter
  model: str = GENERATION_MODEL
  aspect_ratio: str = COVER_ASPECT_RATIO

  async def generate_cover(
    self,
    frame: ExtractedFrame,
    style: str,
    layout_plan: str,
    instruction: str,
  ) -> CoverImage:
    """Render the final cover from `frame`, following `layout_plan`.

    Raises:
      GenerationError: the request failed in transport.
      EmptyResultError: the response carried no inline image.
    """
    request = InferenceRequest(
      model=self.model,
      image=frame,
      text=build_generation_prompt(style, layout_plan, instruction),
      aspect_ratio=self.aspect_ratio,
    )
    logger.info("Calling Gemini for cover generation with model: %s", self.model)
    try:
      response = await self.inference.invoke(request)
    except GeminiServiceError as error:
      raise GenerationError(
        f"Cover generation failed: {error}",
        original_error=error.original_error or error,
        is_quota_error=error.is_quota_error,
        retry_after=error.retry_after,
      ) from error
    except Exception as error:
      raise GenerationError(f"Cover generation failed: {error}", original_error=error) from error

    if not response.images:
      raise EmptyResultError("Gemini did not return image data for the cover")

    first = response.images[0]
    logger.info(f"Cover image received ({len(first.data)} bytes, {first.mime_type})")
    return CoverImage(mime_type=first.mime_type, data=first.data)
