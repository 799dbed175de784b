from __future__ import annotations

from pathlib import Path

import cv2  # type: ignore
import numpy as np
import pytest

from vcover.media import ExtractedFrame, ImagePayload
from vcover.services.gemini import InferenceRequest, InferenceResponse

GRAY_STEP = 2


def write_test_video(path: Path, seconds: int = 10, fps: int = 10, size: tuple[int, int] = (90, 160)) -> Path:
  """Write an MJPG AVI whose frame N is a solid gray of level N * GRAY_STEP."""
  width, height = size
  writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*"MJPG"), fps, (width, height))
  try:
    for index in range(seconds * fps):
      writer.write(np.full((height, width, 3), index * GRAY_STEP, dtype=np.uint8))
  finally:
    writer.release()
  return path


@pytest.fixture
def vertical_video(tmp_path: Path) -> bytes:
  return write_test_video(tmp_path / "clip.avi").read_bytes()


@pytest.fixture
def frame() -> ExtractedFrame:
  return ExtractedFrame(
    mime_type="image/jpeg",
    data=b"\xff\xd8\xff\xe0frame-bytes",
    timestamp_s=2.5,
    width=90,
    height=160,
  )


class FakeInference:
  """In-memory InferenceAdapter keyed by model id.

  Each model maps to an InferenceResponse or an exception to raise.
  """

  def __init__(self, scripted: dict[str, InferenceResponse | Exception]):
    self.scripted = scripted
    self.requests: list[InferenceRequest] = []

  def calls_for(self, model: str) -> list[InferenceRequest]:
    return [request for request in self.requests if request.model == model]

  async def invoke(self, request: InferenceRequest) -> InferenceResponse:
    self.requests.append(request)
    result = self.scripted[request.model]
    if isinstance(result, Exception):
      raise result
    return result


def image_response(*payloads: bytes, mime_type: str = "image/png", text: str | None = None) -> InferenceResponse:
  return InferenceResponse(text=text, images=[ImagePayload(mime_type=mime_type, data=data) for data in payloads])
