from __future__ import annotations

import base64
from types import SimpleNamespace

import pytest
from google.genai import types

from vcover.media import CoverImage
from vcover.services.gemini import (
  COVER_ASPECT_RATIO,
  GENERATION_MODEL,
  PLANNING_MODEL,
  EmptyResultError,
  GeminiInferenceAdapter,
  GeminiServiceError,
  GenerationCallAdapter,
  GenerationError,
  InferenceRequest,
  InferenceResponse,
  PlanningCallAdapter,
  PlanningError,
  to_inference_response,
)

from conftest import FakeInference, image_response


class FakeModels:
  def __init__(self, result):
    self.result = result
    self.calls: list[dict] = []

  async def generate_content(self, **kwargs):
    self.calls.append(kwargs)
    if isinstance(self.result, Exception):
      raise self.result
    return self.result


def _adapter_with(result) -> tuple[GeminiInferenceAdapter, FakeModels]:
  adapter = GeminiInferenceAdapter(api_key="")
  models = FakeModels(result)
  adapter._client = SimpleNamespace(aio=SimpleNamespace(models=models))
  return adapter, models


def _response(*parts: types.Part) -> types.GenerateContentResponse:
  return types.GenerateContentResponse(
    candidates=[types.Candidate(content=types.Content(parts=list(parts)))]
  )


async def test_planning_request_carries_frame_and_style(frame):
  inference = FakeInference({PLANNING_MODEL: InferenceResponse(text="Center composition, title top-left")})

  plan = await PlanningCallAdapter(inference).plan_layout(frame, "glowing typography")

  assert plan == "Center composition, title top-left"
  (request,) = inference.requests
  assert request.model == PLANNING_MODEL
  assert request.image.data == frame.data
  assert request.image.mime_type == "image/jpeg"
  assert "glowing typography" in request.text
  assert "rule of thirds" in request.text
  assert request.aspect_ratio is None


async def test_planning_without_text_yields_empty_plan(frame):
  inference = FakeInference({PLANNING_MODEL: InferenceResponse()})

  assert await PlanningCallAdapter(inference).plan_layout(frame, "style") == ""


async def test_planning_transport_error_is_planning_error(frame):
  inference = FakeInference({PLANNING_MODEL: GeminiServiceError("boom", is_quota_error=True, retry_after=3.0)})

  with pytest.raises(PlanningError) as excinfo:
    await PlanningCallAdapter(inference).plan_layout(frame, "style")

  assert excinfo.value.is_quota_error
  assert excinfo.value.retry_after == 3.0


async def test_generation_prompt_embeds_plan_and_instruction(frame):
  plan = "Headline across the top third, {subtitle} bottom-left"
  inference = FakeInference({GENERATION_MODEL: image_response(b"cover-bytes", b"second")})

  cover = await GenerationCallAdapter(inference).generate_cover(frame, "Didot fonts", plan, "add film grain")

  assert cover == CoverImage(mime_type="image/png", data=b"cover-bytes")
  (request,) = inference.requests
  assert request.model == GENERATION_MODEL
  assert request.aspect_ratio == COVER_ASPECT_RATIO == "9:16"
  assert plan in request.text
  assert "add film grain" in request.text
  assert "Didot fonts" in request.text


async def test_generation_without_images_is_empty_result(frame):
  inference = FakeInference({GENERATION_MODEL: InferenceResponse(text="I cannot draw that")})

  with pytest.raises(EmptyResultError):
    await GenerationCallAdapter(inference).generate_cover(frame, "style", "plan", "")


async def test_generation_transport_error_is_generation_error(frame):
  inference = FakeInference({GENERATION_MODEL: RuntimeError("connection reset")})

  with pytest.raises(GenerationError) as excinfo:
    await GenerationCallAdapter(inference).generate_cover(frame, "style", "plan", "")

  assert not isinstance(excinfo.value, EmptyResultError)


def test_response_mapping_collects_text_and_images():
  response = _response(
    types.Part(text="Center composition, "),
    types.Part(text="title top-left"),
    types.Part(inline_data=types.Blob(data=b"png-bytes", mime_type="image/png")),
    types.Part(inline_data=types.Blob(data=b"jpeg-bytes", mime_type="image/jpeg")),
  )

  mapped = to_inference_response(response)

  assert mapped.text == "Center composition, title top-left"
  assert [(image.mime_type, image.data) for image in mapped.images] == [
    ("image/png", b"png-bytes"),
    ("image/jpeg", b"jpeg-bytes"),
  ]


def test_response_mapping_handles_missing_candidates():
  mapped = to_inference_response(types.GenerateContentResponse(candidates=[]))

  assert mapped.text is None
  assert mapped.images == []


def test_response_mapping_decodes_base64_strings():
  part = SimpleNamespace(
    text=None,
    thought=None,
    inline_data=SimpleNamespace(data=base64.b64encode(b"raw-image").decode(), mime_type=None),
  )
  response = SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[part]))])

  mapped = to_inference_response(response)

  assert mapped.images[0].data == b"raw-image"
  assert mapped.images[0].mime_type == "image/png"


async def test_gemini_adapter_sends_aspect_ratio_config(frame):
  adapter, models = _adapter_with(
    _response(types.Part(inline_data=types.Blob(data=b"img", mime_type="image/png")))
  )

  response = await adapter.invoke(
    InferenceRequest(model=GENERATION_MODEL, image=frame, text="draw", aspect_ratio="9:16")
  )

  assert response.images[0].data == b"img"
  (call,) = models.calls
  assert call["model"] == GENERATION_MODEL
  assert call["config"].image_config.aspect_ratio == "9:16"
  image_part, text_part = call["contents"].parts
  assert image_part.inline_data.data == frame.data
  assert image_part.inline_data.mime_type == "image/jpeg"
  assert text_part.text == "draw"


async def test_gemini_adapter_omits_config_without_aspect_ratio(frame):
  adapter, models = _adapter_with(_response(types.Part(text="plan")))

  response = await adapter.invoke(InferenceRequest(model=PLANNING_MODEL, image=frame, text="plan it"))

  assert response.text == "plan"
  assert models.calls[0]["config"] is None


async def test_gemini_adapter_wraps_quota_errors(frame):
  adapter, _ = _adapter_with(RuntimeError("429 RESOURCE_EXHAUSTED. Please retry in 19.5s"))

  with pytest.raises(GeminiServiceError) as excinfo:
    await adapter.invoke(InferenceRequest(model=PLANNING_MODEL, image=frame, text="plan it"))

  assert excinfo.value.is_quota_error
  assert excinfo.value.retry_after == pytest.approx(19.5)
  assert isinstance(excinfo.value.original_error, RuntimeError)


def test_empty_credential_does_not_fail_at_construction():
  adapter = GeminiInferenceAdapter(api_key="")

  assert adapter._client is None


async def test_missing_credential_fails_locally_on_first_call(frame, monkeypatch):
  from vcover.services import gemini

  def reject_missing_key(api_key):
    raise ValueError("Missing key inputs argument!")

  monkeypatch.setattr(gemini.genai, "Client", reject_missing_key)
  adapter = GeminiInferenceAdapter(api_key="")

  with pytest.raises(GeminiServiceError) as excinfo:
    await adapter.invoke(InferenceRequest(model=PLANNING_MODEL, image=frame, text="plan it"))

  assert isinstance(excinfo.value.original_error, ValueError)
  assert not excinfo.value.is_quota_error
  assert adapter._client is None
