from __future__ import annotations
from PyQt6.QtCore import QObject, QTimer, pyqtSignal


class DebouncedParamWriter(QObject):
    """Coalesces rapid parameter edits (e.g. a knob drag) into one write each.

    Call `schedule(name, value)` on every edit.  Only the latest value per
    parameter is kept; once the debounce interval elapses with no further
    calls, `write_requested` is emitted once per pending parameter in the
    order they were first scheduled.
    """

    write_requested = pyqtSignal(str, int)  # param_name, value

    def __init__(self, debounce_ms: int = 50, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._pending: dict[str, int] = {}
        self._timer = QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.setInterval(debounce_ms)
        self._timer.timeout.connect(self.flush)

    @property
    def debounce_ms(self) -> int:
        return self._timer.interval()

    @debounce_ms.setter
    def debounce_ms(self, value: int) -> None:
        self._timer.setInterval(value)

    @property
    def pending(self) -> dict[str, int]:
        return dict(self._pending)

    def schedule(self, name: str, value: int) -> None:
        """Record the latest value and (re)start the debounce timer."""
        self._pending[name] = value
        self._timer.start()

    def flush(self) -> None:
        self._timer.stop()
        pending, self._pending = self._pending, {}
        for name, value in pending.items():
            self.write_requested.emit(name, value)

    def cancel(self) -> None:
        self._timer.stop()
        self._pending.clear()

    @property
    def is_pending(self) -> bool:
        return self._timer.isActive()
