import csv
import io

import numpy as np

from ..fp_types import FieldData, Marker


class CsvWriter:
    HEADER = [
        "timestamp", "processing_time",
        "width", "height", "undistorted",
        "marker_id",
        "c0_x", "c0_y", "c1_x", "c1_y", "c2_x", "c2_y", "c3_x", "c3_y",
        "center_x", "center_y", "center_z",
        "rvec_x", "rvec_y", "rvec_z",
        "tvec_x", "tvec_y", "tvec_z",
        "is_collection",
    ]

    def __init__(self, csv_path: str):
        self.csv_path = csv_path
        self._opened = False
        self._fh = None
        self._w = None

    def open(self):
        self._fh = open(self.csv_path, "w", newline="")
        self._w = csv.writer(self._fh)
        self._w.writerow(self.HEADER)
        self._opened = True

    @staticmethod
    def _vec(vec, n):
        if vec is None:
            return [float("nan")] * n
        a = np.array(vec, dtype=np.float64).reshape(-1).tolist()
        if len(a) < n:
            a += [float("nan")] * (n - len(a))
        return a[:n]

    @classmethod
    def rows(cls, data: FieldData) -> list[list]:
        """One row per marker; a frame without markers still gets one row."""
        head = [
            f"{data.timestamp:.6f}", f"{data.processing_time:.6f}",
            data.width, data.height, int(data.undistorted),
        ]
        if not data.markers:
            return [head + [""] + [float("nan")] * 17 + [0]]

        out = []
        for m in data.markers:
            out.append(
                head
                + [m.marker_id]
                + cls._vec(m.corners, 8)
                + list(m.center)
                + cls._vec(m.rvec, 3)
                + cls._vec(m.tvec, 3)
                + [int(m is data.collection_marker)]
            )
        return out

    def append(self, data: FieldData):
        for row in self.rows(data):
            self._w.writerow(row)

    @classmethod
    def to_csv_lines(cls, data: FieldData) -> list[str]:
        lines = []
        for row in cls.rows(data):
            buf = io.StringIO()
            csv.writer(buf).writerow(row)
            lines.append(buf.getvalue().strip())
        return lines

    def flush(self):
        if self._fh is not None:
            self._fh.flush()

    def close(self):
        if self._opened and self._fh:
            self._fh.close()
            self._opened = False
            self._fh = None
            self._w = None
