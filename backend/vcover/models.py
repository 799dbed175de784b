from typing import Literal, Optional

from pydantic import BaseModel


class StylePresetResponse(BaseModel):
  id: str
  name: str
  description: str


class GenerateCoverRequest(BaseModel):
  style_id: str = "brutalist"
  instruction: str = ""


class SessionResponse(BaseModel):
  status: Literal["success", "error"]
  job_id: str
  state: str
  has_frame: bool = False
  frame_timestamp_seconds: Optional[float] = None
  frame_url: Optional[str] = None
  cover_url: Optional[str] = None
  processing_time_seconds: Optional[float] = None
  message: Optional[str] = None
