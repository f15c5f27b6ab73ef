import argparse
import signal
import sys

from .config import ServiceConfig, load_service_config
from .worker import FieldWorker


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Run the field camera marker pipeline")
    ap.add_argument("--config", help="Path to JSON/YAML service config")

    ap.add_argument("--camera-id")
    ap.add_argument("--config-dir", help="Directory holding <camera-id>.yaml and <camera-id>_calibration.yml")
    ap.add_argument("--source", choices=["device", "file", "synthetic"])
    ap.add_argument("--device")
    ap.add_argument("--video", help="Video file for --source file")
    ap.add_argument("--fps", type=int)
    ap.add_argument("--width", type=int)
    ap.add_argument("--height", type=int)
    ap.add_argument("--out")
    ap.add_argument("--duration", type=float)
    ap.add_argument("--max-frames", type=int)
    ap.add_argument("--no-csv", action="store_true")
    ap.add_argument("--save-frames", action="store_true")

    return ap


def _apply_args(cfg: ServiceConfig, args: argparse.Namespace) -> ServiceConfig:
    device = args.device
    if isinstance(device, str) and device.isdigit():
        device = int(device)

    cfg.apply_overrides(
        camera_id=args.camera_id,
        config_dir=args.config_dir,
        source=args.source,
        device=device,
        video_path=args.video,
        fps=args.fps,
        width=args.width,
        height=args.height,
        session_root=args.out,
        duration_sec=args.duration,
        max_frames=args.max_frames,
        write_csv=False if args.no_csv else None,
        save_frames=True if args.save_frames else None,
    )
    return cfg.validate()


def main(argv=None) -> int:
    ap = _build_parser()
    args = ap.parse_args(argv)

    cfg = load_service_config(args.config) if args.config else ServiceConfig()
    cfg = _apply_args(cfg, args)

    worker = FieldWorker(cfg)

    def _handle_signal(_sig, _frame):
        worker.stop()

    signal.signal(signal.SIGINT, _handle_signal)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, _handle_signal)
    if hasattr(signal, "SIGHUP"):
        signal.signal(signal.SIGHUP, lambda _sig, _frame: worker.reload_config())

    summary = worker.run()
    print(summary)
    return 0


if __name__ == "__main__":
    sys.exit(main())
