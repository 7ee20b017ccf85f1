from __future__ import annotations
import json
from pathlib import Path


def config_dir() -> Path:
    return Path.home() / ".config" / "taktdeck"


_DEFAULTS = {
    "midi_input_port": None,
    "midi_output_port": None,
    "nrpn_mode": False,
    "log_capacity": 100,
    "port_poll_ms": 1000,
    "param_write_debounce_ms": 50,
}


def _valid(key: str, value) -> bool:
    """Values must match the type of their default; port names may be null."""
    default = _DEFAULTS[key]
    if default is None:
        return value is None or isinstance(value, str)
    if isinstance(default, bool):
        return isinstance(value, bool)
    # bool is an int subclass but never a valid count or interval
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


class AppConfig:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or config_dir() / "config.json"
        self.midi_input_port: str | None = _DEFAULTS["midi_input_port"]
        self.midi_output_port: str | None = _DEFAULTS["midi_output_port"]
        self.nrpn_mode: bool = _DEFAULTS["nrpn_mode"]
        self.log_capacity: int = _DEFAULTS["log_capacity"]
        self.port_poll_ms: int = _DEFAULTS["port_poll_ms"]
        self.param_write_debounce_ms: int = _DEFAULTS["param_write_debounce_ms"]
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> None:
        if not self._path.exists():
            return
        try:
            data = json.loads(self._path.read_text())
            if not isinstance(data, dict):
                return
            for key in _DEFAULTS:
                if key in data and _valid(key, data[key]):
                    setattr(self, key, data[key])
        except (json.JSONDecodeError, OSError):
            pass

    def save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        data = {key: getattr(self, key) for key in _DEFAULTS}
        self._path.write_text(json.dumps(data, indent=2))
