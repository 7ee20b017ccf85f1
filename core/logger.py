from __future__ import annotations
from PyQt6.QtCore import QObject, pyqtSignal


class AppLogger(QObject):
    message_logged = pyqtSignal(str, str)  # category, message

    def __init__(self, echo: bool = True, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._echo = echo

    def log(self, category: str, message: str) -> None:
        if self._echo:
            print(f"[{category}] {message}", flush=True)
        self.message_logged.emit(category, message)

    def midi(self, message: str) -> None:
        self.log("MIDI", message)

    def ports(self, message: str) -> None:
        self.log("PORTS", message)

    def params(self, message: str) -> None:
        self.log("PARAMS", message)

    def general(self, message: str) -> None:
        self.log("GENERAL", message)

    def error(self, message: str) -> None:
        self.log("ERROR", message)
