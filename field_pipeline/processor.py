from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional, Sequence

from .config import ConfigStore, PipelineConfig
from .factory import StrategyFactory
from .fp_types import FieldData, Frame
from .fusion import build_marker, select_collection_marker
from .governor import PerformanceGovernor
from .roi import RoiTracker
from .services.calibration_cache import CalibrationCache

Consumer = Callable[[FieldData], None]


class FieldImageProcessor:
    """Turns (timestamp, image) pairs into FieldData records.

    Each call to ``process`` takes one configuration snapshot from the store
    and uses it for the whole frame. A new store generation rebuilds the
    strategies and forces the calibration cache stale. Records are pushed to
    every subscribed consumer; the processor keeps no other reference to them.
    """

    def __init__(
        self,
        store: ConfigStore,
        consumers: Optional[Sequence[Consumer]] = None,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], float] = time.monotonic,
        governor: Optional[PerformanceGovernor] = None,
        cache: Optional[CalibrationCache] = None,
    ):
        self.store = store
        self.log = logger or logging.getLogger(__name__)
        self.clock = clock
        self.consumers: list[Consumer] = list(consumers or [])
        config = store.current
        self.governor = governor or PerformanceGovernor(config.max_backlog_sec, clock=clock, logger=self.log)
        self.cache = cache or CalibrationCache(config.calibration_path, logger=self.log)
        self.roi = RoiTracker()
        self.frames = 0
        self._generation: Optional[int] = None
        self._config: Optional[PipelineConfig] = None
        self._pre: list = []
        self._det = None
        self._loc = None
        self._busy = threading.Lock()

    def subscribe(self, consumer: Consumer) -> None:
        self.consumers.append(consumer)

    def set_roi(self, start, end) -> None:
        self.roi.set_roi(start, end)

    def _refresh(self, config: PipelineConfig, generation: int) -> None:
        if generation == self._generation:
            return
        self.cache.invalidate(config.calibration_path)
        self._pre, self._det, self._loc = StrategyFactory.from_config(config, self.cache)
        self._config, self._generation = config, generation
        self.log.info("pipeline configured: %s", config.as_dict())

    def process(self, timestamp: float, image, idx: Optional[int] = None) -> Optional[FieldData]:
        config, generation = self.store.snapshot()
        if not self.governor.admit(timestamp, config.max_backlog_sec):
            return None

        with self._busy:
            self._refresh(config, generation)
            self.frames += 1
            f = Frame(self.frames if idx is None else idx, timestamp, image)
            for step in self._pre:
                f = step.apply(f)

            dets = self._det.detect(f) if self._det is not None else []
            poses = self._loc.estimate(dets, f)
            markers = [build_marker(d, p) for d, p in zip(dets, poses)]
            collection = select_collection_marker(markers, config.collection_marker_id)

            data = FieldData(
                timestamp=timestamp,
                processing_time=self.clock() - timestamp,
                input=f.image,
                undistorted=f.undistorted,
                width=f.width,
                height=f.height,
                markers=markers,
                collection_marker=collection,
                valid_gaze_estimate=False,
            )

        self.log.debug(
            "frame=%d markers=%d collection=%s latency=%.3fs",
            f.idx,
            len(markers),
            "none" if collection is None else f"{collection.marker_id}@{collection.depth:.3f}m",
            data.processing_time,
        )
        self._emit(data)
        return data

    def _emit(self, data: FieldData) -> None:
        for consumer in self.consumers:
            try:
                consumer(data)
            except Exception as e:
                self.log.warning("consumer %r failed: %s", consumer, e)
