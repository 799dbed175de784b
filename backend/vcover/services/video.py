from __future__ import annotations

import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

import cv2  # type: ignore
import numpy as np

from ..media import ExtractedFrame, VideoSource

logger = logging.getLogger(__name__)

SEEK_FRACTION = 0.25
JPEG_QUALITY = 80


class VideoProcessingError(Exception):
  """Raised when a still image cannot be produced from a video."""


class DecodeError(VideoProcessingError):
  """The media could not be decoded or has no accessible video track."""


class RenderSurfaceError(VideoProcessingError):
  """The decoded frame could not be rasterized or encoded."""


def extract_frame(video: VideoSource) -> ExtractedFrame:
  """Capture the frame a quarter of the way into `video` as a JPEG still.

  The quarter mark skips black lead-in frames and end credits while staying
  reproducible for the same input.

  Raises:
    DecodeError: the media cannot be opened, has no video track, or the seek
      target cannot be read.
    RenderSurfaceError: the frame cannot be rasterized or JPEG-encoded.
  """

  with _staged_video(video) as video_path:
    capture = cv2.VideoCapture(str(video_path))
    try:
      if not capture.isOpened():
        raise DecodeError("Unable to open video for decoding")

      fps = capture.get(cv2.CAP_PROP_FPS) or 0.0
      frame_count = capture.get(cv2.CAP_PROP_FRAME_COUNT) or 0.0
      width = int(capture.get(cv2.CAP_PROP_FRAME_WIDTH) or 0)
      height = int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT) or 0)
      if fps <= 0 or frame_count <= 0 or width <= 0 or height <= 0:
        raise DecodeError("Video has no accessible video track")

      duration = frame_count / fps
      timestamp = duration * SEEK_FRACTION
      target_frame = min(int(round(timestamp * fps)), int(frame_count) - 1)
      logger.info(
        "Seeking to %.3fs (frame %s of %s) in %sx%s video",
        timestamp,
        target_frame,
        int(frame_count),
        width,
        height,
      )
      capture.set(cv2.CAP_PROP_POS_FRAMES, target_frame)

      success, raster = capture.read()
      if not success or raster is None:
        raise DecodeError(f"Unable to read frame at {timestamp:.3f}s")

      data = _encode_jpeg(raster, width, height)
    finally:
      capture.release()

  logger.info(f"Extracted frame at {timestamp:.3f}s ({len(data)} bytes)")
  return ExtractedFrame(
    mime_type="image/jpeg",
    data=data,
    timestamp_s=timestamp,
    width=width,
    height=height,
  )


def ensure_png(mime_type: str, data: bytes) -> bytes:
  """Return `data` as PNG bytes, transcoding other raster formats."""
  if mime_type == "image/png":
    return data

  raster = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_UNCHANGED)
  if raster is None:
    raise RenderSurfaceError(f"Unable to decode {mime_type} image for PNG export")

  success, encoded = cv2.imencode(".png", raster)
  if not success:
    raise RenderSurfaceError("Failed to encode PNG")
  return encoded.tobytes()


@contextmanager
def _staged_video(video: VideoSource) -> Iterator[Path]:
  """Write the upload to a temp file that is always removed on exit."""
  suffix = Path(video.filename).suffix if video.filename else ".mp4"
  handle, name = tempfile.mkstemp(prefix="vcover-", suffix=suffix or ".mp4")
  path = Path(name)
  try:
    with os.fdopen(handle, "wb") as file:
      file.write(video.data)
    yield path
  finally:
    path.unlink(missing_ok=True)


def _encode_jpeg(raster: np.ndarray, width: int, height: int) -> bytes:
  if raster.size == 0:
    raise RenderSurfaceError("Decoded frame is empty")

  # Some containers report display size that differs from the decoded buffer.
  if raster.shape[1] != width or raster.shape[0] != height:
    raster = cv2.resize(raster, (width, height), interpolation=cv2.INTER_AREA)

  success, encoded = cv2.imencode(".jpg", raster, [cv2.IMWRITE_JPEG_QUALITY, JPEG_QUALITY])
  if not success:
    raise RenderSurfaceError("Failed to encode frame as JPEG")
  return encoded.tobytes()
