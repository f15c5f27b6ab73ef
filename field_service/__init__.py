"""Field camera marker detection service."""

from .config import ServiceConfig
from .worker import FieldWorker

__all__ = ["ServiceConfig", "FieldWorker"]
