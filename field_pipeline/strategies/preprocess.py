from abc import ABC, abstractmethod

import cv2

from ..fp_types import Frame

FLIP_CODES = {"horizontal": 1, "vertical": 0, "both": -1}


class PreprocessStrategy(ABC):
    @abstractmethod
    def apply(self, f: Frame) -> Frame: ...


class ResizeFrame(PreprocessStrategy):
    def __init__(self, width: int, height: int):
        self.size = (int(width), int(height))

    def apply(self, f: Frame) -> Frame:
        if f.size == self.size:
            return f
        img = cv2.resize(f.image, self.size)
        return Frame(f.idx, f.timestamp, img, f.undistorted)


class FlipFrame(PreprocessStrategy):
    def __init__(self, mode: str):
        if mode not in FLIP_CODES:
            raise ValueError(f"Unsupported flip mode: {mode}")
        self.mode = mode
        self.code = FLIP_CODES[mode]

    def apply(self, f: Frame) -> Frame:
        return Frame(f.idx, f.timestamp, cv2.flip(f.image, self.code), f.undistorted)
