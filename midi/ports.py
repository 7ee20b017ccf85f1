from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable
import rtmidi
from PyQt6.QtCore import QObject, QTimer, Qt, pyqtSignal
from core.logger import AppLogger
from midi.codec import decode
from midi.message_log import MessageLog, IN, OUT

INPUT = "input"
OUTPUT = "output"


@dataclass(frozen=True)
class Port:
    id: str
    name: str
    direction: str  # input or output
    index: int
    manufacturer: str = "Unknown"
    connected: bool = True


@dataclass(frozen=True)
class SendResult:
    ok: bool
    sent: int
    failed_index: int | None = None

    def __bool__(self) -> bool:
        return self.ok


def _ports_from_names(names: list[str], direction: str) -> list[Port]:
    ports = []
    seen: dict[str, int] = {}
    for index, name in enumerate(names):
        name = name or f"{direction.title()} {index}"
        seen[name] = seen.get(name, 0) + 1
        # Some backends report identical names for distinct ports
        port_id = name if seen[name] == 1 else f"{name} ({seen[name]})"
        ports.append(Port(id=port_id, name=name, direction=direction, index=index))
    return ports


def _name_count(ports: list[Port], name: str) -> int:
    return sum(1 for p in ports if p.name == name)


class PortManager(QObject):
    """Enumerates MIDI ports and owns the selected input/output.

    Inbound messages are decoded and appended to the MessageLog.  rtmidi
    invokes its callback on a thread of its own, so raw messages are handed to
    the Qt event loop through a queued signal before anything is decoded or
    logged.  python-rtmidi has no hotplug notifications; ``start_polling``
    re-enumerates on a timer instead.
    """

    ports_changed = pyqtSignal()
    input_changed = pyqtSignal(str)   # port id, "" when deselected
    output_changed = pyqtSignal(str)  # port id, "" when deselected
    message_received = pyqtSignal(object)  # decoded MidiEvent
    _raw_received = pyqtSignal(object)

    def __init__(
        self,
        message_log: MessageLog,
        logger: AppLogger | None = None,
        poll_ms: int = 1000,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._log = message_log
        self._logger = logger or AppLogger()
        self._midi_in = rtmidi.MidiIn()
        self._midi_out = rtmidi.MidiOut()
        self._inputs: list[Port] = []
        self._outputs: list[Port] = []
        self._selected_input: Port | None = None
        self._selected_output: Port | None = None
        self._enumerated = False
        self._refreshing = False
        self._raw_received.connect(self._handle_inbound, type=Qt.ConnectionType.QueuedConnection)
        self._poll_timer = QTimer(self)
        self._poll_timer.setInterval(poll_ms)
        self._poll_timer.timeout.connect(self.refresh)

    @property
    def inputs(self) -> list[Port]:
        return list(self._inputs)

    @property
    def outputs(self) -> list[Port]:
        return list(self._outputs)

    @property
    def selected_input(self) -> Port | None:
        return self._selected_input

    @property
    def selected_output(self) -> Port | None:
        return self._selected_output

    @property
    def is_refreshing(self) -> bool:
        return self._refreshing

    # -- enumeration --

    def refresh(self) -> bool:
        """Re-enumerate ports.  Returns False if skipped or failed."""
        if self._refreshing:
            return False
        self._refreshing = True
        try:
            try:
                inputs = _ports_from_names(self._midi_in.get_ports(), INPUT)
                outputs = _ports_from_names(self._midi_out.get_ports(), OUTPUT)
            except rtmidi.RtMidiError as exc:
                text = f"Port enumeration failed: {exc}"
                self._logger.error(text)
                self._log.log_error(text)
                return False
            changed = self._apply_enumeration(inputs, outputs)
        finally:
            self._refreshing = False
        if changed:
            self.ports_changed.emit()
        return True

    def _apply_enumeration(self, inputs: list[Port], outputs: list[Port]) -> bool:
        first = not self._enumerated
        self._enumerated = True
        if first:
            self._logger.ports(f"found {len(inputs)} inputs, {len(outputs)} outputs")
        changed = first
        for old, new, label in ((self._inputs, inputs, "Input"), (self._outputs, outputs, "Output")):
            old_ids = {p.id for p in old}
            new_ids = {p.id for p in new}
            if old_ids == new_ids and [p.index for p in old] == [p.index for p in new]:
                continue
            changed = True
            if first:
                continue
            for port in new:
                if port.id not in old_ids:
                    self._log.log_system(f'{label} device "{port.id}" connected')
            for port in old:
                if port.id not in new_ids:
                    self._log.log_system(f'{label} device "{port.id}" disconnected')
        old_inputs, old_outputs = self._inputs, self._outputs
        self._inputs = inputs
        self._outputs = outputs
        self._reconcile_selection(old_inputs, old_outputs)
        return changed

    def _reconcile_selection(self, old_inputs: list[Port], old_outputs: list[Port]) -> None:
        if self._selected_input is not None:
            port = self._still_present(self._selected_input, old_inputs, self._inputs)
            if port is None:
                self._logger.ports(f"selected input '{self._selected_input.id}' went away")
                self.deselect_input()
            else:
                # The open handle stays bound to the device even if its index moved
                self._selected_input = port
        if self._selected_output is not None:
            port = self._still_present(self._selected_output, old_outputs, self._outputs)
            if port is None:
                self._logger.ports(f"selected output '{self._selected_output.id}' went away")
                self.deselect_output()
            else:
                self._selected_output = port

    def _still_present(self, selected: Port, old: list[Port], new: list[Port]) -> Port | None:
        port = self._find(new, selected.id)
        if port is None:
            return None
        # Ids of same-named ports are positional: once one of them leaves there
        # is no telling which, so the selection is dropped.
        if _name_count(new, selected.name) < _name_count(old, selected.name):
            return None
        return port

    def start_polling(self) -> None:
        self._poll_timer.start()

    def stop_polling(self) -> None:
        self._poll_timer.stop()

    @property
    def is_polling(self) -> bool:
        return self._poll_timer.isActive()

    @staticmethod
    def _find(ports: list[Port], port_id: str) -> Port | None:
        return next((p for p in ports if p.id == port_id), None)

    def find(self, direction: str, text: str) -> Port | None:
        """Look up a port by exact id, then by case-insensitive name fragment."""
        ports = self._inputs if direction == INPUT else self._outputs
        exact = self._find(ports, text)
        if exact is not None:
            return exact
        needle = text.lower()
        return next((p for p in ports if needle in p.name.lower()), None)

    # -- selection --

    def select_input(self, port_id: str | None) -> bool:
        if not port_id:
            self.deselect_input()
            return True
        port = self._find(self._inputs, port_id)
        if port is None:
            self._logger.error(f"No MIDI input port '{port_id}'")
            return False
        self.deselect_input()
        try:
            self._midi_in.open_port(port.index)
        except rtmidi.RtMidiError as exc:
            text = (f"Could not open MIDI input port '{port.name}'. "
                    f"It may be in use by another application. ({exc})")
            self._logger.error(text)
            self._log.log_error(text)
            return False
        # rtmidi drops sysex, clock and active sensing unless told otherwise
        self._midi_in.ignore_types(sysex=False, timing=False, active_sense=False)
        self._midi_in.set_callback(self._on_rtmidi_message)
        self._selected_input = port
        self._logger.ports(f"IN:  {port.name} (index {port.index})")
        self._log.log_system(f"Connected to input: {port.name}")
        self.input_changed.emit(port.id)
        return True

    def deselect_input(self) -> None:
        if self._selected_input is None:
            return
        port = self._selected_input
        self._selected_input = None
        self._midi_in.cancel_callback()
        self._midi_in.close_port()
        self._log.log_system(f"Disconnected from input: {port.name}")
        self.input_changed.emit("")

    def select_output(self, port_id: str | None) -> bool:
        if not port_id:
            self.deselect_output()
            return True
        port = self._find(self._outputs, port_id)
        if port is None:
            self._logger.error(f"No MIDI output port '{port_id}'")
            return False
        self.deselect_output()
        try:
            self._midi_out.open_port(port.index)
        except rtmidi.RtMidiError as exc:
            text = (f"Could not open MIDI output port '{port.name}'. "
                    f"It may be in use by another application. ({exc})")
            self._logger.error(text)
            self._log.log_error(text)
            return False
        self._selected_output = port
        self._logger.ports(f"OUT: {port.name} (index {port.index})")
        self._log.log_system(f"Connected to output: {port.name}")
        self.output_changed.emit(port.id)
        return True

    def deselect_output(self) -> None:
        if self._selected_output is None:
            return
        port = self._selected_output
        self._selected_output = None
        self._midi_out.close_port()
        self._log.log_system(f"Disconnected from output: {port.name}")
        self.output_changed.emit("")

    def close(self) -> None:
        self.stop_polling()
        self.deselect_input()
        self.deselect_output()

    # -- traffic --

    def send(self, data: bytes | list[int]) -> bool:
        if self._selected_output is None:
            self._logger.error("Send failed: no output device selected")
            self._log.log_error("No output device selected")
            return False
        try:
            self._midi_out.send_message(list(data))
        except Exception as exc:
            text = f"Failed to send MIDI message: {exc}"
            self._logger.error(text)
            self._log.log_error(text)
            return False
        self._log.log_event(OUT, decode(data))
        return True

    def send_all(self, messages: Iterable[bytes | list[int]]) -> SendResult:
        """Send messages in order, stopping at the first failure.

        Messages after a failure are not sent; the receiving device may be left
        with a partial update (e.g. an NRPN address without its data).
        """
        sent = 0
        for index, message in enumerate(messages):
            if not self.send(message):
                return SendResult(ok=False, sent=sent, failed_index=index)
            sent += 1
        return SendResult(ok=True, sent=sent)

    def _on_rtmidi_message(self, event, _data=None) -> None:
        # rtmidi thread: hand off to the event loop
        message, _delta = event
        self._raw_received.emit(list(message))

    def _handle_inbound(self, message) -> None:
        event = decode(message)
        self._log.log_event(IN, event)
        self.message_received.emit(event)
