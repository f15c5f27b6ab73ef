from .config import PipelineConfig
from .services.calibration_cache import CalibrationCache
from .strategies.preprocess import FlipFrame, ResizeFrame
from .strategies.undistort import CachedUndistort
from .strategies.detect_aruco import ArucoDetect
from .strategies.localize_pnp import PnPLocalize


class StrategyFactory:
    @staticmethod
    def from_config(config: PipelineConfig, cache: CalibrationCache):
        # Preprocess: resize -> flip -> (sanitize + optional remap)
        pre = []
        if config.input_size is not None:
            pre.append(ResizeFrame(*config.input_size))
        if config.flip != "none":
            pre.append(FlipFrame(config.flip))
        pre.append(CachedUndistort(cache, enabled=config.undistort))

        # Detection and localization
        det = None
        if config.marker_detection_method == "aruco":
            det = ArucoDetect(
                config.aruco_dict,
                border_bits=config.marker_border_bits,
                min_perimeter_rate=config.min_marker_perimeter_rate,
                downscaling_factor=config.processing_downscaling_factor,
            )
        loc = PnPLocalize(cache, config.collection_marker_size_m)

        return pre, det, loc
