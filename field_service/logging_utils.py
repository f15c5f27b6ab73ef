import logging

FORMAT = "%(asctime)s %(levelname)s [%(camera)s] %(message)s"


class CameraIdFilter(logging.Filter):
    def __init__(self, camera_id: str):
        super().__init__()
        self.camera_id = camera_id

    def filter(self, record: logging.LogRecord) -> bool:
        record.camera = self.camera_id
        return True


def setup_logger(camera_id: str, level: int = logging.INFO) -> logging.Logger:
    logger = logging.getLogger(f"field_service.{camera_id}")
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(FORMAT))
        handler.addFilter(CameraIdFilter(camera_id))
        logger.addHandler(handler)

    return logger


def add_file_handler(logger: logging.Logger, camera_id: str, log_path: str) -> logging.Handler:
    handler = logging.FileHandler(log_path)
    handler.setFormatter(logging.Formatter(FORMAT))
    handler.addFilter(CameraIdFilter(camera_id))
    logger.addHandler(handler)
    return handler
