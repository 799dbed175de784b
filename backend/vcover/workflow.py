from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Callable, TypedDict, Union

from langgraph.graph import END, START, StateGraph

from .media import CoverImage, ExtractedFrame
from .services.gemini import (
  EmptyResultError,
  GenerationCallAdapter,
  GenerationError,
  PlanningCallAdapter,
  PlanningError,
)

logger = logging.getLogger(__name__)

UNSUPPORTED_MEDIA_MESSAGE = "Unsupported media format."
GENERATION_FAILURE_MESSAGE = "The AI engine is busy, please try again."


class JobState(str, enum.Enum):
  IDLE = "idle"
  EXTRACTING_FRAME = "extracting_frame"
  PLANNING_LAYOUT = "planning_layout"
  GENERATING_IMAGE = "generating_image"
  SUCCEEDED = "succeeded"
  FAILED = "failed"


class ErrorKind(str, enum.Enum):
  """What the user is told."""

  UNSUPPORTED_MEDIA = "unsupported_media"
  GENERATION_FAILURE = "generation_failure"

  @property
  def message(self) -> str:
    if self is ErrorKind.UNSUPPORTED_MEDIA:
      return UNSUPPORTED_MEDIA_MESSAGE
    return GENERATION_FAILURE_MESSAGE


class FailureReason(str, enum.Enum):
  """Where it actually broke. Logged, never shown to the user."""

  DECODE = "decode"
  RENDER_SURFACE = "render_surface"
  PLANNING = "planning"
  GENERATION = "generation"
  EMPTY_RESULT = "empty_result"
  UNEXPECTED = "unexpected"


@dataclass(frozen=True, slots=True)
class Success:
  cover: CoverImage


@dataclass(frozen=True, slots=True)
class Failure:
  kind: ErrorKind
  reason: FailureReason
  detail: str = ""

  @property
  def message(self) -> str:
    return self.kind.message


JobOutcome = Union[Success, Failure]
TransitionCallback = Callable[[JobState], None]


class CoverState(TypedDict, total=False):
  frame: ExtractedFrame
  style: str
  instruction: str
  layout_plan: str
  cover: CoverImage


@dataclass
class CoverSynthesisPipeline:
  """Plan the layout, then generate the cover. Strictly in that order."""

  planner: PlanningCallAdapter
  generator: GenerationCallAdapter
  on_transition: TransitionCallback | None = None
  _graph: object = field(init=False, repr=False)

  def __post_init__(self) -> None:
    builder = StateGraph(CoverState)
    builder.add_node("plan_layout", self._plan_layout_node)
    builder.add_node("generate_cover", self._generate_cover_node)
    builder.add_edge(START, "plan_layout")
    builder.add_edge("plan_layout", "generate_cover")
    builder.add_edge("generate_cover", END)
    self._graph = builder.compile()

  async def synthesize(
    self,
    frame: ExtractedFrame,
    style: str,
    instruction: str = "",
    on_transition: TransitionCallback | None = None,
  ) -> JobOutcome:
    """Run both stages and classify the result. Never raises."""
    notify = on_transition or self.on_transition
    initial_state: CoverState = {
      "frame": frame,
      "style": style,
      "instruction": instruction,
    }

    try:
      final_state = await self._graph.ainvoke(initial_state, config={"configurable": {"notify": notify}})
    except PlanningError as error:
      logger.error(f"Layout planning failed: {error}")
      return self._fail(notify, FailureReason.PLANNING, error)
    except EmptyResultError as error:
      logger.error(f"Cover generation returned no image: {error}")
      return self._fail(notify, FailureReason.EMPTY_RESULT, error)
    except GenerationError as error:
      logger.error(f"Cover generation failed: {error}")
      return self._fail(notify, FailureReason.GENERATION, error)
    except Exception as error:
      logger.error(f"Unexpected error during cover synthesis: {error}", exc_info=True)
      return self._fail(notify, FailureReason.UNEXPECTED, error)

    _notify(notify, JobState.SUCCEEDED)
    return Success(cover=final_state["cover"])

  async def _plan_layout_node(self, state: CoverState, config) -> dict:
    _notify(_notify_from(config), JobState.PLANNING_LAYOUT)
    layout_plan = await self.planner.plan_layout(state["frame"], state["style"])
    return {"layout_plan": layout_plan}

  async def _generate_cover_node(self, state: CoverState, config) -> dict:
    _notify(_notify_from(config), JobState.GENERATING_IMAGE)
    cover = await self.generator.generate_cover(
      state["frame"],
      state["style"],
      state["layout_plan"],
      state.get("instruction", ""),
    )
    return {"cover": cover}

  @staticmethod
  def _fail(notify: TransitionCallback | None, reason: FailureReason, error: Exception) -> Failure:
    _notify(notify, JobState.FAILED)
    return Failure(kind=ErrorKind.GENERATION_FAILURE, reason=reason, detail=str(error))


def _notify_from(config) -> TransitionCallback | None:
  return (config or {}).get("configurable", {}).get("notify")


def _notify(callback: TransitionCallback | None, state: JobState) -> None:
  if callback is not None:
    callback(state)
