from __future__ import annotations

import queue
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from field_pipeline.config import ConfigStore, load_pipeline_config
from field_pipeline.fp_types import FieldData
from field_pipeline.processor import FieldImageProcessor
from field_pipeline.services.storage import SessionStorage

from .capture import BaseCapture, SyntheticCapture, USBOpenCVCapture, VideoFileCapture
from .config import ServiceConfig
from .logging_utils import add_file_handler, setup_logger
from .output import CsvOutput, OutputSink

_END = object()


@dataclass
class SessionSummary:
    session_path: str
    frames_read: int
    frames_emitted: int
    frames_dropped: int
    csv_path: Optional[str]
    log_path: str
    avg_fps: float
    errors: int


class FieldWorker:
    """Runs one camera's field pipeline.

    A capture thread (when a source is configured) pushes (timestamp, image)
    pairs into a bounded inbox; the calling thread drains it through the
    processor one frame at a time. External producers can use ``submit``.
    """

    def __init__(
        self,
        config: ServiceConfig,
        store: Optional[ConfigStore] = None,
        logger=None,
        outputs: Optional[list[OutputSink]] = None,
        capture: Optional[BaseCapture] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.logger = logger or setup_logger(config.camera_id)
        if store is None:
            store = ConfigStore(load_pipeline_config(config.config_dir, config.camera_id), config.config_dir)
        self.store = store
        if outputs is None:
            outputs = [CsvOutput()] if config.write_csv else []
        self.outputs = outputs
        self.capture = capture
        self.clock = clock
        self.inbox: queue.Queue = queue.Queue(maxsize=config.queue_size)
        self.processor = FieldImageProcessor(store, consumers=[self._dispatch], logger=self.logger, clock=clock)
        self._stop_event = threading.Event()
        self._storage: Optional[SessionStorage] = None
        self.frames_read = 0
        self.frames_emitted = 0
        self.errors = 0

    def stop(self) -> None:
        self._stop_event.set()

    def set_roi(self, start, end) -> None:
        self.processor.set_roi(start, end)

    def reload_config(self):
        cfg = self.store.load()
        self.logger.info("configuration reloaded")
        return cfg

    def submit(self, timestamp: float, image, timeout: Optional[float] = None) -> None:
        self.inbox.put((timestamp, image), timeout=timeout)

    def _build_capture(self) -> Optional[BaseCapture]:
        if self.capture is not None:
            return self.capture
        src = self.config.source
        if src == "synthetic":
            return SyntheticCapture(self.config.fps, self.config.width, self.config.height)
        if src == "file":
            return VideoFileCapture(self.config.video_path, self.config.fps)
        if src == "device":
            return USBOpenCVCapture(
                self.config.device,
                self.config.fps,
                self.config.width,
                self.config.height,
            )
        return None

    def _capture_loop(self, cap: BaseCapture) -> None:
        finite = isinstance(cap, VideoFileCapture)
        try:
            while not self._stop_event.is_set():
                item = cap.next_frame()
                if item is None:
                    if finite:
                        break
                    self.errors += 1
                    continue
                while not self._stop_event.is_set():
                    try:
                        self.inbox.put(item, timeout=0.1)
                        break
                    except queue.Full:
                        continue
        except Exception as e:
            self.errors += 1
            self.logger.error("capture failed: %s", e)
        finally:
            while True:
                try:
                    self.inbox.put(_END, timeout=0.1)
                    break
                except queue.Full:
                    if self._stop_event.is_set():
                        break

    def _dispatch(self, data: FieldData) -> None:
        self.frames_emitted += 1
        if self.config.save_frames and self._storage is not None:
            self._storage.save_frame(self.frames_emitted, data.input)
        for out in self.outputs:
            try:
                out.write(data)
            except Exception as e:
                self.logger.warning("output %s failed: %s", type(out).__name__, e)

    def _should_stop(self, t0: float) -> bool:
        if self._stop_event.is_set():
            return True
        if self.config.duration_sec and (time.time() - t0) >= self.config.duration_sec:
            return True
        if self.config.max_frames and self.frames_read >= self.config.max_frames:
            return True
        return False

    def run(self) -> SessionSummary:
        storage = SessionStorage(self.config.session_root, name=f"{self.config.camera_id}_session")
        self._storage = storage
        session_path = storage.begin()
        storage.write_manifest({
            "service": self.config.as_dict(),
            "pipeline": self.store.current.as_dict(),
        })

        log_file = str(Path(storage.logs_dir) / "session.log")
        file_handler = add_file_handler(self.logger, self.config.camera_id, log_file)

        for out in self.outputs:
            out.open(Path(storage.session_dir))

        cap = self._build_capture()
        capture_thread = None

        self.logger.info("session started: %s", session_path)
        self.logger.info("config: %s", self.config.as_dict())

        t0 = time.time()
        try:
            if cap is not None:
                cap.start()
                capture_thread = threading.Thread(
                    target=self._capture_loop, args=(cap,), name=f"{self.config.camera_id}-capture", daemon=True
                )
                capture_thread.start()

            while not self._should_stop(t0):
                try:
                    item = self.inbox.get(timeout=0.1)
                except queue.Empty:
                    continue
                if item is _END:
                    break
                timestamp, image = item
                self.frames_read += 1
                self.processor.process(timestamp, image, idx=self.frames_read)

        finally:
            self._stop_event.set()
            if capture_thread is not None:
                capture_thread.join(timeout=2.0)
            if cap is not None:
                try:
                    cap.stop()
                except Exception as e:
                    self.logger.warning("capture stop failed: %s", e)

            for out in self.outputs:
                try:
                    out.close()
                except Exception as e:
                    self.logger.warning("output close failed: %s", e)

        stats = self.processor.governor.stats()
        avg = self.frames_emitted / max(1e-6, (time.time() - t0))
        self.logger.info(
            "summary read=%d emitted=%d dropped=%d avg_fps=%.2f errors=%d",
            self.frames_read, self.frames_emitted, stats.dropped, avg, self.errors,
        )
        self.logger.removeHandler(file_handler)
        file_handler.close()

        csv_path = next((str(o.path) for o in self.outputs if isinstance(o, CsvOutput)), None)
        return SessionSummary(
            str(session_path),
            self.frames_read,
            self.frames_emitted,
            stats.dropped,
            csv_path,
            log_file,
            avg,
            self.errors,
        )
