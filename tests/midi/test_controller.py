import pytest
from unittest.mock import patch, MagicMock
from core.logger import AppLogger
from midi.codec import decode, encode_nrpn, join_14bit
from midi.message_log import ERROR, MessageLog


@pytest.fixture
def midi_out():
    with patch("midi.ports.rtmidi") as mock_mod:
        midi_in = MagicMock()
        out = MagicMock()
        midi_in.get_ports.return_value = ["Digitakt"]
        out.get_ports.return_value = ["Digitakt"]
        mock_mod.MidiIn.return_value = midi_in
        mock_mod.MidiOut.return_value = out
        yield out


@pytest.fixture
def ports(qapp, midi_out):
    from midi.ports import PortManager
    mgr = PortManager(MessageLog(), logger=AppLogger(echo=False))
    mgr.refresh()
    mgr.select_output("Digitakt")
    return mgr


@pytest.fixture
def controller(ports):
    from midi.controller import SynthController
    return SynthController(ports, logger=AppLogger(echo=False))


def _sent(midi_out):
    return [c.args[0] for c in midi_out.send_message.call_args_list]


def test_set_param_sends_cc(controller, midi_out):
    assert controller.set_param("filter_freq", 100) is True
    assert _sent(midi_out) == [[0xB0, 74, 100]]
    assert controller.state.get("filter_freq") == 100


def test_set_param_nrpn_mode(controller, midi_out):
    controller.nrpn_mode = True
    assert controller.set_param("filter_res", 90)
    assert _sent(midi_out) == [
        [0xB0, 99, 1], [0xB0, 98, 1], [0xB0, 6, 0], [0xB0, 38, 90],
    ]


def test_nrpn_mode_falls_back_to_cc_without_nrpn(controller, midi_out):
    controller.nrpn_mode = True
    controller.set_param("track_level", 80)
    assert _sent(midi_out) == [[0xB0, 95, 80]]


def test_set_param_clamps(controller, midi_out):
    changed = []
    controller.param_changed.connect(lambda name, value: changed.append((name, value)))
    controller.set_param("filter_freq", 500)
    assert _sent(midi_out) == [[0xB0, 74, 127]]
    assert changed == [("filter_freq", 127)]


def test_set_unknown_param(controller):
    with pytest.raises(KeyError):
        controller.set_param("nope", 1)
    with pytest.raises(KeyError):
        controller.schedule_param("nope", 1)


def test_set_param_without_output(controller, ports):
    ports.deselect_output()
    assert controller.set_param("filter_freq", 3) is False
    assert controller.state.get("filter_freq") == 3
    assert ports._log.entries[0].direction == ERROR


def test_partial_nrpn_failure_stops_sending(controller, midi_out):
    controller.nrpn_mode = True
    midi_out.send_message.side_effect = [None, OSError("gone"), None, None]
    assert controller.set_param("filter_res", 90) is False
    assert midi_out.send_message.call_count == 2


def test_toggle_nrpn_mode(controller):
    modes = []
    controller.nrpn_mode_changed.connect(modes.append)
    assert controller.toggle_nrpn_mode() is True
    assert controller.toggle_nrpn_mode() is False
    controller.nrpn_mode = False
    assert modes == [True, False]


def test_inbound_cc_updates_param(controller):
    changed = []
    controller.param_changed.connect(lambda name, value: changed.append((name, value)))
    controller.handle_inbound(decode([0xB0, 74, 33]))
    assert controller.state.get("filter_freq") == 33
    assert changed == [("filter_freq", 33)]


def test_inbound_cc_matches_channel(controller):
    controller.handle_inbound(decode([0xB8, 74, 12]))
    assert controller.state.get("midi_val5") == 12
    assert controller.state.get("filter_freq") == 64


def test_inbound_cc_clamps_to_range(controller):
    controller.handle_inbound(decode([0xB0, 76, 100]))
    assert controller.state.get("filter_type") == 1


def test_inbound_nrpn_updates_param(controller):
    for msg in encode_nrpn(0, join_14bit(1, 1), 90):
        controller.handle_inbound(decode(msg))
    assert controller.state.get("filter_res") == 90


def test_inbound_via_port_manager(controller, ports):
    ports._handle_inbound([0xB0, 21, 7])
    assert controller.state.get("reverb_decay") == 7


def test_inbound_other_messages_ignored(controller):
    before = controller.state.as_dict()
    controller.handle_inbound(decode([0x90, 74, 33]))
    assert controller.state.as_dict() == before


def test_schedule_param_writes_latest(controller, midi_out):
    controller.schedule_param("filter_freq", 10)
    controller.schedule_param("filter_freq", 20)
    assert _sent(midi_out) == []
    controller.writer.flush()
    assert _sent(midi_out) == [[0xB0, 74, 20]]
