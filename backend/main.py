from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse

from alertness.config import AlertnessSettings, SettingsError
from alertness.replay import parse_frame, replay
from alertness.service import AlertnessService

from .config_loader import load_raw, load_settings, persist_settings
from .db import Database
from .schemas import HistoryResponse, ReplayRequest, ReplayResponse, SettingsSchema, TrackingSchema

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
_log = logging.getLogger("AlertnessBackend")

ROOT = Path(__file__).resolve().parent.parent
CONFIG_PATH = ROOT / "configs" / "default.yaml"

raw_cfg: Dict[str, Any] = load_raw(str(CONFIG_PATH))
settings: AlertnessSettings = load_settings(str(CONFIG_PATH))
db_path = raw_cfg.get("storage", {}).get("database_path", "artifacts/drowsiness_guard.db")
DB_PATH = ROOT / db_path
DB_PATH.parent.mkdir(parents=True, exist_ok=True)
database = Database(str(DB_PATH))
autostart = bool(raw_cfg.get("tracking", {}).get("camera_enabled", False))

app = FastAPI(title="drowsiness-guard", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

service = AlertnessService(settings, db=database)


def _window(start: Optional[float], end: Optional[float]) -> tuple[float, float]:
    now = time.time()
    return start or (now - 60 * 10), end or now


@app.on_event("startup")
async def startup() -> None:
    service.loop = asyncio.get_running_loop()
    if autostart:
        service.start()


@app.on_event("shutdown")
async def shutdown() -> None:
    service.stop()
    database.close()


@app.get("/api/health")
async def health() -> Dict[str, Any]:
    return {"status": "ok", "detection_running": service.running}


@app.get("/api/status")
async def status() -> Dict[str, Any]:
    return service.status()


@app.get("/api/settings", response_model=SettingsSchema)
async def get_settings() -> SettingsSchema:
    return SettingsSchema(**settings.to_dict())


@app.post("/api/settings", response_model=SettingsSchema)
async def update_settings(payload: SettingsSchema) -> SettingsSchema:
    global settings
    try:
        settings = AlertnessSettings.from_dict(payload.dict())
    except SettingsError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    service.update_settings(settings)
    persist_settings(str(CONFIG_PATH), payload.dict())
    return payload


@app.post("/api/tracking")
async def tracking(payload: TrackingSchema) -> Dict[str, Any]:
    _log.info("Camera tracking %s", "enabled" if payload.enabled else "disabled")
    if payload.enabled and not service.running:
        service.start()
    elif not payload.enabled and service.running:
        await asyncio.to_thread(service.stop)
    persist_settings(str(CONFIG_PATH), {"tracking": {"camera_enabled": payload.enabled}})
    return service.status()


@app.websocket("/api/stream")
async def websocket_stream(ws: WebSocket) -> None:
    await ws.accept()
    queue = service.subscribe()
    try:
        while True:
            payload = await queue.get()
            await ws.send_text(payload)
    except WebSocketDisconnect:
        pass
    finally:
        service.unsubscribe(queue)


@app.get("/api/history", response_model=HistoryResponse)
async def history(
    start: Optional[float] = Query(None),
    end: Optional[float] = Query(None),
) -> HistoryResponse:
    start_ts, end_ts = _window(start, end)
    frames = database.history(start_ts, end_ts)
    events = database.events(start_ts, end_ts)
    return HistoryResponse(frames=frames, events=events)


@app.get("/api/alerts")
async def alerts(
    start: Optional[float] = Query(None),
    end: Optional[float] = Query(None),
) -> Dict[str, Any]:
    start_ts, end_ts = _window(start, end)
    return {"alerts": database.alerts(start_ts, end_ts)}


@app.get("/api/export")
async def export(
    start: Optional[float] = Query(None),
    end: Optional[float] = Query(None),
) -> StreamingResponse:
    start_ts, end_ts = _window(start, end)
    filename = f"alertness_{int(start_ts)}_{int(end_ts)}.csv"
    generator = database.export_csv(start_ts, end_ts)
    return StreamingResponse(generator, media_type="text/csv", headers={"Content-Disposition": f'attachment; filename="{filename}"'})


@app.post("/api/replay", response_model=ReplayResponse)
async def replay_frames(payload: ReplayRequest) -> ReplayResponse:
    replay_settings = settings
    if payload.settings is not None:
        try:
            replay_settings = AlertnessSettings.from_dict(payload.settings.dict())
        except SettingsError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc

    frames = [parse_frame(row.dict(exclude_none=True)) for row in payload.frames]
    recorder = replay(frames, replay_settings)
    return ReplayResponse(
        states=[update.state.value for update in recorder.updates],
        alerts=[alert.to_dict() for alert in recorder.alerts],
    )


@app.get("/api/video")
async def video_feed() -> StreamingResponse:
    boundary = "frame"

    async def frame_generator():
        while True:
            frame = service.latest_frame()
            if frame:
                yield b"--" + boundary.encode() + b"\r\n"
                yield b"Content-Type: image/jpeg\r\n\r\n" + frame + b"\r\n"
            await asyncio.sleep(0.08)

    media_type = f"multipart/x-mixed-replace; boundary={boundary}"
    return StreamingResponse(frame_generator(), media_type=media_type)


if __name__ == "__main__":
    uvicorn.run("backend.main:app", host="0.0.0.0", port=8000, reload=True)
