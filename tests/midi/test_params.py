import pytest
from midi.params import GROUP_TITLES, ParamDef, ParamMap, ParamState


def test_param_map_lookup():
    pm = ParamMap()
    p = pm.get("filter_freq")
    assert p is not None
    assert p.name == "filter_freq"
    assert p.channel == 0
    assert p.cc_number == 74
    assert p.nrpn_number == (1 << 7) | 0
    assert p.default == 64


def test_param_map_list_all():
    pm = ParamMap()
    params = pm.list_all()
    assert len(params) > 0
    assert all(isinstance(p, ParamDef) for p in params)
    assert len(pm.names()) == len(params)


def test_every_group_has_a_title():
    pm = ParamMap()
    assert set(pm.groups()) <= set(GROUP_TITLES)


def test_param_map_by_group():
    pm = ParamMap()
    names = [p.name for p in pm.by_group("amp")]
    assert names == ["amp_attack", "amp_decay", "amp_sustain", "amp_release"]


def test_param_map_match_cc_respects_channel():
    pm = ParamMap()
    assert [p.name for p in pm.match_cc(0, 74)] == ["filter_freq"]
    assert [p.name for p in pm.match_cc(8, 74)] == ["midi_val5"]
    assert pm.match_cc(3, 74) == []


def test_param_map_match_nrpn():
    pm = ParamMap()
    assert [p.name for p in pm.match_nrpn(0, (1 << 7) | 1)] == ["filter_res"]


def test_cc_only_params_exist():
    pm = ParamMap()
    cc_only = [p for p in pm.cc_params() if not p.is_nrpn]
    assert {p.name for p in cc_only} == {"track_mute", "track_level"}
    assert len(pm.nrpn_params()) == len(pm.list_all()) - 2


def test_build_messages_cc_mode():
    p = ParamMap().get("filter_freq")
    assert p.build_messages(100) == [bytes([0xB0, 74, 100])]


def test_build_messages_nrpn_mode():
    p = ParamMap().get("filter_res")
    assert p.build_messages(90, nrpn_mode=True) == [
        bytes([0xB0, 99, 1]), bytes([0xB0, 98, 1]),
        bytes([0xB0, 6, 0]), bytes([0xB0, 38, 90]),
    ]


def test_build_messages_uses_param_channel():
    p = ParamMap().get("midi_val1")
    assert p.build_messages(5) == [bytes([0xB8, 70, 5])]


def test_nrpn_mode_without_nrpn_falls_back_to_cc():
    p = ParamMap().get("track_level")
    assert p.build_messages(80, nrpn_mode=True) == p.build_messages(80, nrpn_mode=False)
    assert p.build_messages(80, nrpn_mode=True) == [bytes([0xB0, 95, 80])]


def test_nrpn_only_param_sends_nrpn_in_cc_mode():
    p = ParamDef("x", "X", channel=1, nrpn_msb=2, nrpn_lsb=3)
    msgs = p.build_messages(7, nrpn_mode=False)
    assert len(msgs) == 4
    assert msgs[0] == bytes([0xB1, 99, 2])


def test_build_messages_clamps_value():
    p = ParamMap().get("filter_type")
    assert p.build_messages(-10) == [bytes([0xB0, 76, 0])]
    assert p.build_messages(999) == [bytes([0xB0, 76, 1])]


def test_param_def_requires_an_address():
    with pytest.raises(ValueError, match="No MIDI address"):
        ParamDef("nothing", "Nothing", channel=0)


@pytest.mark.parametrize("kwargs", [
    {"channel": 16, "cc_number": 1},
    {"channel": 0, "cc_number": 128},
    {"channel": 0, "nrpn_msb": 1},
    {"channel": 0, "nrpn_msb": 128, "nrpn_lsb": 0},
    {"channel": 0, "cc_number": 1, "default": 200},
])
def test_param_def_validates(kwargs):
    with pytest.raises(ValueError):
        ParamDef("bad", "Bad", **kwargs)


def test_param_state_defaults():
    state = ParamState(ParamMap())
    assert state.get("filter_freq") == 64
    assert state.get("delay_feedback") == 40
    assert state.get("track_level") == 100


def test_param_state_set_clamps():
    state = ParamState(ParamMap())
    assert state.set("filter_type", 5) == 1
    assert state.get("filter_type") == 1
    assert state.set("filter_freq", -3) == 0


def test_param_state_unknown_name():
    state = ParamState(ParamMap())
    with pytest.raises(KeyError):
        state.set("nope", 1)


def test_param_state_value_for():
    state = ParamState(ParamMap())
    state.set("reverb_mix", 77)
    assert state.value_for(0, 22) == 77
    assert state.value_for(5, 22) == 0


def test_param_state_reset():
    state = ParamState(ParamMap())
    state.set("filter_freq", 1)
    state.reset()
    assert state.get("filter_freq") == 64
    assert state.as_dict()["filter_freq"] == 64
