from __future__ import annotations
import json
import re
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from midi.params import ParamState


@dataclass
class ParamSnapshot:
    name: str
    values: dict[str, int] = field(default_factory=dict)
    nrpn_mode: bool = False
    created: str = field(default_factory=lambda: date.today().isoformat())

    @classmethod
    def capture(cls, name: str, state: ParamState, nrpn_mode: bool = False) -> ParamSnapshot:
        return cls(name=name, values=state.as_dict(), nrpn_mode=nrpn_mode)

    def apply_to(self, state: ParamState) -> list[str]:
        """Restore values into ``state``; names it doesn't know are skipped.

        Returns the names that were applied.
        """
        applied = []
        for param_name, value in self.values.items():
            if state.param_map.get(param_name) is None:
                continue
            state.set(param_name, value)
            applied.append(param_name)
        return applied

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "nrpn_mode": self.nrpn_mode,
            "created": self.created,
            "values": dict(self.values),
        }

    def save(self, json_path: Path) -> None:
        json_path.parent.mkdir(parents=True, exist_ok=True)
        json_path.write_text(json.dumps(self.to_dict(), indent=2))

    @classmethod
    def load(cls, json_path: Path) -> ParamSnapshot:
        d = json.loads(json_path.read_text())
        if not isinstance(d, dict) or not isinstance(d.get("values"), dict):
            raise ValueError(f"Snapshot JSON missing 'values': {json_path}")
        return cls(
            name=d.get("name", json_path.stem),
            values={str(k): int(v) for k, v in d["values"].items()},
            nrpn_mode=bool(d.get("nrpn_mode", False)),
            created=d.get("created", date.today().isoformat()),
        )

    @property
    def slug(self) -> str:
        return re.sub(r"[^\w-]", "-", self.name.lower()).strip("-")
