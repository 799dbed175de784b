from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Callable

from fastapi.concurrency import run_in_threadpool

from .media import CoverImage, ExtractedFrame, VideoSource
from .services.style_presets import get_preset
from .services.video import DecodeError, VideoProcessingError, extract_frame
from .workflow import (
  CoverSynthesisPipeline,
  ErrorKind,
  Failure,
  FailureReason,
  JobOutcome,
  JobState,
  Success,
)

logger = logging.getLogger(__name__)

ACTIVE_STATES = frozenset({JobState.EXTRACTING_FRAME, JobState.PLANNING_LAYOUT, JobState.GENERATING_IMAGE})
TRANSITION_HISTORY = 64


class SessionError(Exception):
  """Raised when a session operation is not allowed in the current state."""


class NoFrameError(SessionError):
  pass


class SessionBusyError(SessionError):
  pass


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
  state: JobState
  frame: ExtractedFrame | None
  cover: CoverImage | None
  error_message: str | None


@dataclass
class CoverSession:
  """Holds the one frame, the one job, and the one result of a user session.

  Each job carries a generation token; anything that supersedes the job
  (a new video, a reset, or another job) bumps the token, and a job that
  finishes with a stale token has its result dropped.
  """

  pipeline: CoverSynthesisPipeline
  extractor: Callable[[VideoSource], ExtractedFrame] = extract_frame
  state: JobState = field(default=JobState.IDLE, init=False)
  frame: ExtractedFrame | None = field(default=None, init=False)
  cover: CoverImage | None = field(default=None, init=False)
  error_message: str | None = field(default=None, init=False)
  last_failure: Failure | None = field(default=None, init=False)
  transitions: deque[JobState] = field(default_factory=lambda: deque(maxlen=TRANSITION_HISTORY), init=False)
  _generation: int = field(default=0, init=False, repr=False)

  @property
  def is_busy(self) -> bool:
    return self.state in ACTIVE_STATES

  def snapshot(self) -> SessionSnapshot:
    return SessionSnapshot(
      state=self.state,
      frame=self.frame,
      cover=self.cover,
      error_message=self.error_message,
    )

  async def load_video(self, video: VideoSource) -> JobOutcome | None:
    """Extract a new frame. Returns a Failure if the media is unsupported.

    The decode runs in the threadpool so the event loop stays free while the
    caller is suspended; a reset during extraction discards the frame.
    """
    if self.is_busy:
      raise SessionBusyError("A cover job is already running")

    self._generation += 1
    token = self._generation
    self._set_state(JobState.EXTRACTING_FRAME)
    failure: Failure | None = None
    try:
      frame = await run_in_threadpool(self.extractor, video)
    except VideoProcessingError as error:
      reason = FailureReason.DECODE if isinstance(error, DecodeError) else FailureReason.RENDER_SURFACE
      logger.warning(f"Frame extraction failed ({reason.value}): {error}")
      failure = Failure(ErrorKind.UNSUPPORTED_MEDIA, reason, str(error))
    except Exception as error:
      logger.error(f"Unexpected error during frame extraction: {error}", exc_info=True)
      failure = Failure(ErrorKind.UNSUPPORTED_MEDIA, FailureReason.UNEXPECTED, str(error))

    if token != self._generation:
      logger.info(f"Ignoring frame from superseded extraction {token}")
      return None
    if failure is not None:
      return self._record_failure(failure)

    self.frame = frame
    self.cover = None
    self.error_message = None
    self.last_failure = None
    self._set_state(JobState.IDLE)
    return None

  async def generate(self, style_id: str, instruction: str = "") -> JobOutcome | None:
    """Run one cover job. Returns None if the job was superseded before finishing.

    Raises:
      NoFrameError: no video has been loaded.
      SessionBusyError: another job is in flight.
      KeyError: `style_id` is not a known preset.
    """
    if self.frame is None:
      raise NoFrameError("Load a video before generating a cover")
    if self.is_busy:
      raise SessionBusyError("A cover job is already running")

    preset = get_preset(style_id)
    self._generation += 1
    token = self._generation
    frame = self.frame
    self.error_message = None
    # Claim the job before the first await so a concurrent call sees it busy.
    self._set_state(JobState.PLANNING_LAYOUT)

    def on_transition(state: JobState) -> None:
      if token == self._generation:
        self._set_state(state)

    logger.info(f"Starting cover job {token} with style '{preset.id}'")
    outcome = await self.pipeline.synthesize(frame, preset.prompt_modifier, instruction, on_transition=on_transition)

    if token != self._generation:
      logger.info(f"Ignoring result of superseded cover job {token}")
      return None

    if isinstance(outcome, Success):
      self.cover = outcome.cover
      self.last_failure = None
    else:
      self.error_message = outcome.message
      self.last_failure = outcome
    return outcome

  def reset(self) -> None:
    self._generation += 1
    self.frame = None
    self.cover = None
    self.error_message = None
    self.last_failure = None
    self._set_state(JobState.IDLE)

  def _record_failure(self, failure: Failure) -> Failure:
    self.error_message = failure.message
    self.last_failure = failure
    self._set_state(JobState.FAILED)
    return failure

  def _set_state(self, state: JobState) -> None:
    if self.transitions and self.transitions[-1] is state and self.state is state:
      return
    self.state = state
    self.transitions.append(state)
