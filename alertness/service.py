from __future__ import annotations

import asyncio
import json
import logging
import threading
import time
from typing import Any, Dict, List, Optional

import cv2

from .attention import AttentionState
from .config import AlertnessSettings
from .engine import AttentionEngine, EngineResult
from .landmarks import LandmarkExtractor
from .messages import Alert, AttentionUpdate

_log = logging.getLogger("AlertnessService")

STATE_COLORS = {
    AttentionState.AWAKE: (0, 200, 0),
    AttentionState.DROWSY: (0, 165, 255),
    AttentionState.MICROSLEEP: (0, 0, 255),
}


class AlertnessService:
    """
    Camera host for the attention engine.

    Frames are captured and classified on a single worker thread, which is
    the only thread that ever touches the engine. Messages leave the thread
    through ``loop.call_soon_threadsafe`` into subscriber queues.
    """

    def __init__(self, settings: AlertnessSettings, db=None, loop: Optional[asyncio.AbstractEventLoop] = None):
        self.settings = settings
        self.db = db
        self.loop = loop

        self.engine = AttentionEngine(settings_provider=self.current_settings, notifier=self)
        self.extractor: Optional[LandmarkExtractor] = None

        self.capture: Optional[cv2.VideoCapture] = None
        self.running = False
        self.thread: Optional[threading.Thread] = None
        self.join_timeout = 2.0
        self._stop_event = threading.Event()

        self.listeners: List[asyncio.Queue] = []
        self.last_frame_jpeg: Optional[bytes] = None
        self.last_update: Optional[AttentionUpdate] = None

        self.lock = threading.Lock()

    def start(self) -> bool:
        if self.running:
            _log.info("Camera detection already running")
            return True
        if self.thread is not None and self.thread.is_alive():
            self.thread.join(timeout=self.join_timeout)
            if self.thread.is_alive():
                _log.warning("Previous capture thread still shutting down, not starting a new session")
                return False
        self.engine.reset()
        self._stop_event = threading.Event()
        self.running = True
        self.thread = threading.Thread(target=self._run, args=(self._stop_event,), daemon=True)
        self.thread.start()
        _log.info("Camera detection started")
        if self.db:
            self.db.log_event("SESSION_START", time.time())
        return True

    def stop(self) -> None:
        if not self.running:
            return
        self.running = False
        self._stop_event.set()
        if self.thread:
            self.thread.join(timeout=self.join_timeout)
        self.last_update = None
        _log.info("Camera detection stopped")
        if self.db:
            self.db.log_event("SESSION_STOP", time.time())

    def current_settings(self) -> AlertnessSettings:
        return self.settings

    def update_settings(self, settings: AlertnessSettings) -> None:
        # picked up by the next frame; camera changes need a restart
        self.settings = settings

    def status(self) -> Dict[str, Any]:
        return {
            "running": self.running,
            "frame_count": self.engine.state.frame_count,
            "state": self.engine.current_state.value,
        }

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        self.listeners.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        if queue in self.listeners:
            self.listeners.remove(queue)

    def on_update(self, update: AttentionUpdate) -> None:
        self.last_update = update
        if self.db:
            self.db.log_frame(update)
        self._broadcast(update.to_message())

    def on_alert(self, alert: Alert) -> None:
        if self.db:
            self.db.log_event(f"{alert.state.value.upper()}_ALERT", alert.timestamp, json.dumps(alert.to_dict()))
        self._broadcast(alert.to_message())

    def _broadcast(self, message: Dict[str, Any]) -> None:
        if self.loop is None:
            return
        payload = json.dumps(message)
        for queue in list(self.listeners):
            self.loop.call_soon_threadsafe(self._push_queue, queue, payload)

    @staticmethod
    def _push_queue(queue: asyncio.Queue, payload: str) -> None:
        try:
            if queue.qsize() > 2:
                queue.get_nowait()
            queue.put_nowait(payload)
        except asyncio.QueueFull:
            return

    def _store_frame(self, frame) -> None:
        ok, buf = cv2.imencode(".jpg", frame)
        if ok:
            with self.lock:
                self.last_frame_jpeg = buf.tobytes()

    def latest_frame(self) -> Optional[bytes]:
        with self.lock:
            return self.last_frame_jpeg

    def _draw_overlay(self, frame, result: Optional[EngineResult]) -> Any:
        overlay = frame.copy()
        if result is None:
            cv2.putText(overlay, "detection paused", (20, 40), cv2.FONT_HERSHEY_SIMPLEX, 0.7, (200, 200, 200), 2, cv2.LINE_AA)
            return overlay

        update = result.update
        color = STATE_COLORS[update.state]
        height, width = frame.shape[:2]
        if self.extractor:
            for eye in self.extractor.eye_points(width, height):
                cv2.polylines(overlay, [eye.astype("int32")], True, color, 1)

        ear_text = f"{update.ear_value:.3f}" if update.ear_value is not None else "no face"
        cv2.putText(
            overlay,
            f"{update.state.value.upper()} | EAR {ear_text} | closed {update.eyes_closed_duration:.1f}s | fps {update.fps:.1f}",
            (20, 40),
            cv2.FONT_HERSHEY_SIMPLEX,
            0.7,
            color,
            2,
            cv2.LINE_AA,
        )
        return overlay

    def _open_camera(self) -> cv2.VideoCapture:
        camera = self.settings.camera
        capture = cv2.VideoCapture(camera.index)
        capture.set(cv2.CAP_PROP_FRAME_WIDTH, camera.width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, camera.height)
        if camera.fps:
            capture.set(cv2.CAP_PROP_FPS, camera.fps)
        return capture

    def _create_extractor(self) -> LandmarkExtractor:
        return LandmarkExtractor()

    def _run(self, stop_event: threading.Event) -> None:
        try:
            try:
                self.extractor = self._create_extractor()
            except Exception:
                _log.exception("Face landmarker failed to load, camera detection unavailable")
                return
            if stop_event.is_set():
                return
            self.capture = self._open_camera()

            while not stop_event.is_set():
                ok, frame = self.capture.read()
                if not ok or frame is None:
                    time.sleep(0.05)
                    continue

                observation = self.extractor.observe(frame)
                result = self.engine.handle(observation)

                overlay = self._draw_overlay(frame, result)
                self._store_frame(overlay)
        except Exception:
            _log.exception("Capture loop failed, stopping camera detection")
        finally:
            if self.capture is not None:
                self.capture.release()
                self.capture = None
            if self.extractor is not None:
                self.extractor.close()
                self.extractor = None
            self.engine.reset()
            if stop_event is self._stop_event:
                self.running = False
