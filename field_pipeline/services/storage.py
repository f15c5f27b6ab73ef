from pathlib import Path
import json, cv2


class SessionStorage:
    def __init__(self, root: str, name: str = "session"):
        self.root = Path(root)
        self.session_dir = None
        self.frames_dir = None
        self.logs_dir = None
        self.last_path = None
        self.name = name

    def begin(self) -> str:
        from time import strftime
        sid = f"{self.name}_{strftime('%Y%m%d_%H%M%S')}"
        self.session_dir = self.root / sid
        self.frames_dir = self.session_dir / "frames"
        self.logs_dir = self.session_dir / "logs"
        for d in (self.frames_dir, self.logs_dir):
            d.mkdir(parents=True, exist_ok=True)
        return str(self.session_dir)

    def save_frame(self, idx: int, image):
        """Save the preprocessed frame (after resize/flip/undistort)."""
        p = self.frames_dir / f"f{idx:06d}.jpg"
        cv2.imwrite(str(p), image)
        self.last_path = str(p)
        return self.last_path

    def write_manifest(self, meta: dict):
        with open(self.session_dir / "config.json", "w") as fp:
            json.dump(meta, fp, indent=2)
