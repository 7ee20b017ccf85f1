from __future__ import annotations
import json
from pathlib import Path
from model.snapshot import ParamSnapshot


class SnapshotLibrary:
    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self._snapshots_dir = self.root / "snapshots"
        self._snapshots_dir.mkdir(parents=True, exist_ok=True)

    def _unique_path(self, slug: str) -> Path:
        path = self._snapshots_dir / f"{slug}.json"
        counter = 1
        while path.exists():
            path = self._snapshots_dir / f"{slug}-{counter}.json"
            counter += 1
        return path

    def save(self, snapshot: ParamSnapshot) -> Path:
        path = self._unique_path(snapshot.slug or "snapshot")
        snapshot.save(path)
        return path

    def list_snapshots(self) -> list[tuple[Path, ParamSnapshot]]:
        result = []
        for f in sorted(self._snapshots_dir.glob("*.json")):
            try:
                result.append((f, ParamSnapshot.load(f)))
            except (json.JSONDecodeError, ValueError, TypeError, OSError):
                pass  # skip malformed or unreadable files
        return result

    def find(self, name: str) -> ParamSnapshot | None:
        for _path, snapshot in self.list_snapshots():
            if snapshot.name == name:
                return snapshot
        return None

    def delete(self, json_path: Path) -> None:
        if json_path.exists():
            json_path.unlink()
