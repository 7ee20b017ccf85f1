from __future__ import annotations
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime
from PyQt6.QtCore import QObject, pyqtSignal
from midi.codec import MidiEvent, hex_dump

IN = "in"
OUT = "out"
SYSTEM = "system"
ERROR = "error"

DEFAULT_CAPACITY = 100
_LATENCY_WINDOW = 50
_ERROR_WINDOW = 20


@dataclass
class LogEntry:
    direction: str  # in, out, system or error
    kind: str
    text: str
    raw: tuple = ()
    timestamp: datetime = field(default_factory=datetime.now)
    channel: int | None = None  # 0-indexed
    event: MidiEvent | None = None

    @property
    def hex(self) -> str:
        return hex_dump(self.raw) if self.raw else ""

    def format(self) -> str:
        stamp = self.timestamp.strftime("%H:%M:%S.%f")[:-3]
        line = f"[{stamp}] [{self.direction.upper()}] {self.text}"
        if self.raw and self.direction in (IN, OUT):
            line += f"  <{self.hex}>"
        return line


class MessageLog(QObject):
    """Bounded newest-first record of MIDI traffic with running statistics.

    Entries are inserted at the head; once ``capacity`` is exceeded the oldest
    entries drop off the tail.  Counters survive eviction and are only reset by
    ``clear()``.
    """

    entry_added = pyqtSignal(object)  # LogEntry
    cleared = pyqtSignal()

    def __init__(self, capacity: int = DEFAULT_CAPACITY, parent: QObject | None = None) -> None:
        super().__init__(parent)
        if capacity < 1:
            raise ValueError(f"Log capacity must be positive, got {capacity}")
        self._entries: deque[LogEntry] = deque(maxlen=capacity)
        self._errors: deque[LogEntry] = deque(maxlen=_ERROR_WINDOW)
        self._intervals_ms: deque[float] = deque(maxlen=_LATENCY_WINDOW)
        self._last_timestamp: datetime | None = None
        self.total_messages = 0
        self.by_kind: Counter[str] = Counter()
        self.by_channel: Counter[int] = Counter()  # 1-indexed

    @property
    def capacity(self) -> int:
        return self._entries.maxlen

    @property
    def entries(self) -> list[LogEntry]:
        return list(self._entries)

    @property
    def errors(self) -> list[LogEntry]:
        return list(self._errors)

    def __len__(self) -> int:
        return len(self._entries)

    def append(self, entry: LogEntry) -> LogEntry:
        self._update_stats(entry)
        self._entries.appendleft(entry)
        if entry.direction == ERROR:
            self._errors.append(entry)
        self.entry_added.emit(entry)
        return entry

    def log_event(self, direction: str, event: MidiEvent,
                  timestamp: datetime | None = None) -> LogEntry:
        entry = LogEntry(
            direction=direction,
            kind=event.kind,
            text=event.describe(),
            raw=event.raw,
            channel=event.channel_or_none,
            event=event,
        )
        if timestamp is not None:
            entry.timestamp = timestamp
        return self.append(entry)

    def log_system(self, text: str) -> LogEntry:
        return self.append(LogEntry(direction=SYSTEM, kind="System", text=text))

    def log_error(self, text: str) -> LogEntry:
        return self.append(LogEntry(direction=ERROR, kind="Error", text=text))

    def _update_stats(self, entry: LogEntry) -> None:
        if self._last_timestamp is not None:
            delta = (entry.timestamp - self._last_timestamp).total_seconds() * 1000.0
            self._intervals_ms.append(delta)
        self._last_timestamp = entry.timestamp
        self.total_messages += 1
        self.by_kind[entry.kind] += 1
        if entry.channel is not None:
            self.by_channel[entry.channel + 1] += 1

    @property
    def average_latency_ms(self) -> float | None:
        if not self._intervals_ms:
            return None
        return sum(self._intervals_ms) / len(self._intervals_ms)

    @property
    def latency_samples(self) -> list[float]:
        return list(self._intervals_ms)

    def reset_latency_stats(self) -> None:
        self._intervals_ms.clear()
        self._last_timestamp = None

    def clear(self) -> None:
        self._entries.clear()
        self.total_messages = 0
        self.by_kind.clear()
        self.by_channel.clear()
        self.cleared.emit()
