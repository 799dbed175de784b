from __future__ import annotations

import logging
import time
import uuid

from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from .config import settings
from .media import VideoSource
from .models import GenerateCoverRequest, SessionResponse, StylePresetResponse
from .services.gemini import GeminiInferenceAdapter, GenerationCallAdapter, PlanningCallAdapter
from .services.style_presets import PRESETS
from .services.video import RenderSurfaceError, ensure_png
from .session import CoverSession, NoFrameError, SessionBusyError
from .workflow import UNSUPPORTED_MEDIA_MESSAGE, CoverSynthesisPipeline, Failure

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

COVER_FILENAME = "vcover.png"


app = FastAPI(title="V-Cover Editorial Studio")

app.add_middleware(
  CORSMiddleware,
  allow_origins=["*"],
  allow_credentials=True,
  allow_methods=["*"],
  allow_headers=["*"],
)


def build_session(api_key: str) -> CoverSession:
  inference = GeminiInferenceAdapter(api_key=api_key)
  pipeline = CoverSynthesisPipeline(
    planner=PlanningCallAdapter(inference),
    generator=GenerationCallAdapter(inference),
  )
  return CoverSession(pipeline=pipeline)


cover_session = build_session(settings.gemini_api_key)


def get_session() -> CoverSession:
  return cover_session


def _session_response(session: CoverSession, job_id: str, start_time: float | None = None) -> SessionResponse:
  snapshot = session.snapshot()
  return SessionResponse(
    status="error" if snapshot.error_message else "success",
    job_id=job_id,
    state=snapshot.state.value,
    has_frame=snapshot.frame is not None,
    frame_timestamp_seconds=snapshot.frame.timestamp_s if snapshot.frame else None,
    frame_url="/api/session/frame" if snapshot.frame else None,
    cover_url="/api/session/cover/download" if snapshot.cover else None,
    processing_time_seconds=time.perf_counter() - start_time if start_time is not None else None,
    message=snapshot.error_message,
  )


@app.get("/api/styles", response_model=list[StylePresetResponse])
async def list_styles() -> list[StylePresetResponse]:
  return [
    StylePresetResponse(id=preset.id, name=preset.name, description=preset.description)
    for preset in PRESETS.values()
  ]


@app.get("/api/session", response_model=SessionResponse)
async def get_session_state(session: CoverSession = Depends(get_session)) -> SessionResponse:
  return _session_response(session, job_id="")


@app.post("/api/session/video", response_model=SessionResponse)
async def upload_video(
  request: Request,
  file: UploadFile = File(...),
  session: CoverSession = Depends(get_session),
) -> SessionResponse:
  job_id = str(uuid.uuid4())
  request.state.job_id = job_id
  start_time = time.perf_counter()

  data = await file.read()
  logger.info(f"Extracting frame from upload '{file.filename}' ({len(data)} bytes)")
  try:
    outcome = await session.load_video(VideoSource(data=data, filename=file.filename))
  except SessionBusyError as error:
    raise HTTPException(status_code=409, detail=str(error)) from error

  if isinstance(outcome, Failure):
    raise HTTPException(status_code=400, detail=outcome.message)

  return _session_response(session, job_id, start_time)


@app.post("/api/session/cover", response_model=SessionResponse)
async def generate_cover(
  body: GenerateCoverRequest,
  request: Request,
  session: CoverSession = Depends(get_session),
) -> SessionResponse:
  job_id = str(uuid.uuid4())
  request.state.job_id = job_id
  start_time = time.perf_counter()

  try:
    outcome = await session.generate(body.style_id, body.instruction)
  except KeyError as error:
    raise HTTPException(status_code=404, detail=f"Unknown style preset: {body.style_id}") from error
  except (NoFrameError, SessionBusyError) as error:
    raise HTTPException(status_code=409, detail=str(error)) from error

  if isinstance(outcome, Failure):
    logger.error(f"Cover job {job_id} failed ({outcome.reason.value}): {outcome.detail}")
    raise HTTPException(status_code=502, detail=outcome.message)

  return _session_response(session, job_id, start_time)


@app.post("/api/session/reset", response_model=SessionResponse)
async def reset_session(session: CoverSession = Depends(get_session)) -> SessionResponse:
  session.reset()
  return _session_response(session, job_id="")


@app.get("/api/session/frame")
async def get_frame(session: CoverSession = Depends(get_session)) -> Response:
  if session.frame is None:
    raise HTTPException(status_code=409, detail="No frame has been extracted")
  return Response(content=session.frame.data, media_type=session.frame.mime_type)


@app.get("/api/session/cover/download")
async def download_cover(session: CoverSession = Depends(get_session)) -> Response:
  cover = session.cover
  if cover is None:
    raise HTTPException(status_code=409, detail="No cover has been generated")

  try:
    png = ensure_png(cover.mime_type, cover.data)
  except RenderSurfaceError as error:
    logger.error(f"Cover export failed: {error}", exc_info=True)
    raise HTTPException(status_code=400, detail=UNSUPPORTED_MEDIA_MESSAGE) from error

  return Response(
    content=png,
    media_type="image/png",
    headers={"Content-Disposition": f'attachment; filename="{COVER_FILENAME}"'},
  )


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
  return JSONResponse(
    status_code=exc.status_code,
    content={
      "status": "error",
      "job_id": getattr(request.state, "job_id", ""),
      "message": str(exc.detail),
    },
  )
