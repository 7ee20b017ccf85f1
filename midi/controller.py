from __future__ import annotations
from PyQt6.QtCore import QObject, pyqtSignal
from core.logger import AppLogger
from midi.codec import ControlChange, MidiEvent, NrpnReceiver
from midi.param_writer import DebouncedParamWriter
from midi.params import ParamMap, ParamState
from midi.ports import PortManager, SendResult


class SynthController(QObject):
    """Routes parameter edits to the device and tracks inbound changes.

    Outbound writes go through the PortManager one message at a time.  An NRPN
    write is four messages; if one fails the rest are dropped and the device
    may hold a partial update.  Retrying is left to the caller.
    """

    param_changed = pyqtSignal(str, int)   # param_name, value
    nrpn_mode_changed = pyqtSignal(bool)

    def __init__(
        self,
        ports: PortManager,
        param_map: ParamMap | None = None,
        logger: AppLogger | None = None,
        nrpn_mode: bool = False,
        debounce_ms: int = 50,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._ports = ports
        self._param_map = param_map or ParamMap()
        self._state = ParamState(self._param_map)
        self._logger = logger or AppLogger()
        self._nrpn_mode = nrpn_mode
        self._nrpn_receiver = NrpnReceiver()
        self._writer = DebouncedParamWriter(debounce_ms=debounce_ms, parent=self)
        self._writer.write_requested.connect(self.set_param)
        self._ports.message_received.connect(self.handle_inbound)

    @property
    def state(self) -> ParamState:
        return self._state

    @property
    def param_map(self) -> ParamMap:
        return self._param_map

    @property
    def writer(self) -> DebouncedParamWriter:
        return self._writer

    @property
    def nrpn_mode(self) -> bool:
        return self._nrpn_mode

    @nrpn_mode.setter
    def nrpn_mode(self, enabled: bool) -> None:
        enabled = bool(enabled)
        if enabled != self._nrpn_mode:
            self._nrpn_mode = enabled
            self._logger.params(f"NRPN mode {'on' if enabled else 'off'}")
            self.nrpn_mode_changed.emit(enabled)

    def toggle_nrpn_mode(self) -> bool:
        self.nrpn_mode = not self._nrpn_mode
        return self._nrpn_mode

    def set_param(self, name: str, value: int) -> bool:
        """Store and send a parameter value.  Unknown names raise KeyError."""
        param = self._param_map.get(name)
        if param is None:
            raise KeyError(name)
        value = self._state.set(name, value)
        self.param_changed.emit(name, value)
        result: SendResult = self._ports.send_all(param.build_messages(value, self._nrpn_mode))
        if not result.ok:
            self._logger.error(
                f"{name}={value}: message {result.failed_index + 1} failed, "
                f"{result.sent} sent"
            )
        return result.ok

    def schedule_param(self, name: str, value: int) -> None:
        if self._param_map.get(name) is None:
            raise KeyError(name)
        self._writer.schedule(name, value)

    def handle_inbound(self, event: MidiEvent) -> None:
        """Mirror inbound CC and completed NRPN writes into the parameter state."""
        if not isinstance(event, ControlChange):
            return
        nrpn = self._nrpn_receiver.feed(event)
        if nrpn is not None:
            for param in self._param_map.match_nrpn(nrpn.channel, nrpn.parameter):
                self._apply_inbound(param.name, nrpn.value)
            return
        for param in self._param_map.match_cc(event.channel, event.controller):
            self._apply_inbound(param.name, event.value)

    def _apply_inbound(self, name: str, value: int) -> None:
        value = self._state.set(name, value)
        self._logger.params(f"RX {name} = {value}")
        self.param_changed.emit(name, value)
