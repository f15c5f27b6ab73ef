from __future__ import annotations

import logging
import queue
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Optional

from field_pipeline.fp_types import FieldData
from field_pipeline.services.csv_writer import CsvWriter


class OutputSink(ABC):
    @abstractmethod
    def open(self, session_dir: Path) -> None: ...

    @abstractmethod
    def write(self, data: FieldData) -> None: ...

    @abstractmethod
    def close(self) -> None: ...


class CsvOutput(OutputSink):
    def __init__(self, filename: str = "field_data.csv"):
        self.filename = filename
        self.path: Optional[Path] = None
        self._writer: Optional[CsvWriter] = None

    def open(self, session_dir: Path) -> None:
        self.path = session_dir / self.filename
        self._writer = CsvWriter(str(self.path))
        self._writer.open()

    def write(self, data: FieldData) -> None:
        if self._writer is None:
            return
        self._writer.append(data)

    def close(self) -> None:
        if self._writer is not None:
            self._writer.close()
            self._writer = None


class QueueOutput(OutputSink):
    """Channel to a downstream consumer (e.g. gaze estimation).

    Never blocks the processing loop: a full queue loses the record and
    bumps ``overflows``.
    """

    def __init__(self, channel: Optional[queue.Queue] = None, logger: Optional[logging.Logger] = None):
        self.channel: queue.Queue = channel if channel is not None else queue.Queue()
        self.log = logger or logging.getLogger(__name__)
        self.overflows = 0

    def open(self, session_dir: Path) -> None:
        return None

    def write(self, data: FieldData) -> None:
        try:
            self.channel.put_nowait(data)
        except queue.Full:
            self.overflows += 1
            self.log.warning("output queue full, record ts=%.6f lost", data.timestamp)

    def close(self) -> None:
        return None


class CallbackOutput(OutputSink):
    def __init__(self, callback: Callable[[FieldData], None]):
        self.callback = callback

    def open(self, session_dir: Path) -> None:
        return None

    def write(self, data: FieldData) -> None:
        self.callback(data)

    def close(self) -> None:
        return None


class NullOutput(OutputSink):
    def open(self, session_dir: Path) -> None:
        return None

    def write(self, data: FieldData) -> None:
        return None

    def close(self) -> None:
        return None
