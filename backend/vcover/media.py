from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class VideoSource:
  """Raw uploaded video bytes. Consumed once by the frame extractor."""

  data: bytes
  filename: str | None = None


@dataclass(frozen=True, slots=True)
class ImagePayload:
  mime_type: str
  data: bytes


@dataclass(frozen=True, slots=True)
class ExtractedFrame(ImagePayload):
  """A single still taken from a video at `timestamp_s`."""

  timestamp_s: float = 0.0
  width: int = 0
  height: int = 0


@dataclass(frozen=True, slots=True)
class CoverImage(ImagePayload):
  """The synthesized cover returned by the generation call."""
