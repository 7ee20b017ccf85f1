from __future__ import annotations
from dataclasses import dataclass
from midi.codec import MAX_14BIT, encode_cc, encode_nrpn, join_14bit


@dataclass
class ParamDef:
    name: str
    display_name: str
    channel: int  # 0-indexed
    min_val: int = 0
    max_val: int = 127
    default: int = 0
    group: str = ""
    control: str = "knob"  # knob, slider or toggle
    cc_number: int | None = None
    nrpn_msb: int | None = None
    nrpn_lsb: int | None = None

    def __post_init__(self) -> None:
        if self.cc_number is None and not self.is_nrpn:
            raise ValueError(f"No MIDI address for parameter '{self.name}'")
        if not 0 <= self.channel <= 15:
            raise ValueError(f"Channel {self.channel} out of range for '{self.name}'")
        if self.cc_number is not None and not 0 <= self.cc_number <= 127:
            raise ValueError(f"CC {self.cc_number} out of range for '{self.name}'")
        if (self.nrpn_msb is None) != (self.nrpn_lsb is None):
            raise ValueError(f"NRPN for '{self.name}' needs both MSB and LSB")
        if self.is_nrpn and not (0 <= self.nrpn_msb <= 127 and 0 <= self.nrpn_lsb <= 127):
            raise ValueError(f"NRPN {self.nrpn_msb}:{self.nrpn_lsb} out of range for '{self.name}'")
        if not self.min_val <= self.default <= self.max_val:
            raise ValueError(
                f"Default {self.default} outside {self.min_val}-{self.max_val} for '{self.name}'"
            )

    @property
    def is_nrpn(self) -> bool:
        return self.nrpn_msb is not None and self.nrpn_lsb is not None

    @property
    def nrpn_number(self) -> int | None:
        if not self.is_nrpn:
            return None
        return join_14bit(self.nrpn_msb, self.nrpn_lsb)

    def clamp(self, value: int) -> int:
        return max(self.min_val, min(self.max_val, int(value)))

    def build_messages(self, value: int, nrpn_mode: bool = False) -> list[bytes]:
        """Return the wire messages that set this parameter to ``value``.

        NRPN mode only applies to parameters with an NRPN address; others are
        sent as CC.  A parameter addressed only by NRPN is always sent as NRPN.
        """
        value = self.clamp(value)
        if self.is_nrpn and (nrpn_mode or self.cc_number is None):
            return encode_nrpn(self.channel, self.nrpn_number, max(0, min(MAX_14BIT, value)))
        return [encode_cc(self.channel, self.cc_number, value & 0x7F)]


GROUP_TITLES = {
    "midi_track": "MIDI Track Controls",
    "filter": "Filter",
    "amp": "Amplifier",
    "lfo": "LFO",
    "delay": "Delay",
    "reverb": "Reverb",
    "track": "Track",
}

# ---------------------------------------------------------------------------
# Parameter definitions (Elektron Digitakt)
# Audio tracks default to channel 1, the MIDI track to channel 9.
# NRPN addresses are MSB 1 with the LSB shown per row.
# ---------------------------------------------------------------------------

_PARAMS: list[ParamDef] = [
    # MIDI track VAL knobs
    ParamDef("midi_val1", "VAL1", channel=8, group="midi_track", cc_number=70, nrpn_msb=1, nrpn_lsb=56),
    ParamDef("midi_val2", "VAL2", channel=8, group="midi_track", cc_number=71, nrpn_msb=1, nrpn_lsb=57),
    ParamDef("midi_val5", "VAL5", channel=8, group="midi_track", cc_number=74, nrpn_msb=1, nrpn_lsb=60),
    ParamDef("midi_val8", "VAL8", channel=8, group="midi_track", cc_number=77, nrpn_msb=1, nrpn_lsb=63),

    # Filter
    ParamDef("filter_freq", "Frequency", channel=0, default=64, group="filter",
             cc_number=74, nrpn_msb=1, nrpn_lsb=0),
    ParamDef("filter_res", "Resonance", channel=0, group="filter",
             cc_number=75, nrpn_msb=1, nrpn_lsb=1),
    ParamDef("filter_type", "Type", channel=0, max_val=1, group="filter", control="toggle",
             cc_number=76, nrpn_msb=1, nrpn_lsb=2),
    ParamDef("filter_attack", "Attack", channel=0, group="filter", control="slider",
             cc_number=73, nrpn_msb=1, nrpn_lsb=3),

    # Amp envelope
    ParamDef("amp_attack", "Attack", channel=0, group="amp", control="slider",
             cc_number=24, nrpn_msb=1, nrpn_lsb=8),
    ParamDef("amp_decay", "Decay", channel=0, default=64, group="amp", control="slider",
             cc_number=25, nrpn_msb=1, nrpn_lsb=9),
    ParamDef("amp_sustain", "Sustain", channel=0, group="amp", control="slider",
             cc_number=26, nrpn_msb=1, nrpn_lsb=10),
    ParamDef("amp_release", "Release", channel=0, group="amp", control="slider",
             cc_number=27, nrpn_msb=1, nrpn_lsb=11),

    # LFO
    ParamDef("lfo_speed", "Speed", channel=0, default=32, group="lfo",
             cc_number=28, nrpn_msb=1, nrpn_lsb=16),
    ParamDef("lfo_multiply", "Multiplier", channel=0, group="lfo",
             cc_number=29, nrpn_msb=1, nrpn_lsb=17),
    ParamDef("lfo_fade", "Fade In/Out", channel=0, group="lfo", control="slider",
             cc_number=30, nrpn_msb=1, nrpn_lsb=18),
    ParamDef("lfo_destination", "Destination", channel=0, group="lfo",
             cc_number=31, nrpn_msb=1, nrpn_lsb=19),

    # Delay send
    ParamDef("delay_time", "Time", channel=0, default=64, group="delay",
             cc_number=16, nrpn_msb=1, nrpn_lsb=64),
    ParamDef("delay_feedback", "Feedback", channel=0, default=40, group="delay",
             cc_number=17, nrpn_msb=1, nrpn_lsb=65),
    ParamDef("delay_mix", "Mix", channel=0, group="delay", control="slider",
             cc_number=18, nrpn_msb=1, nrpn_lsb=66),
    ParamDef("delay_ping_pong", "Ping Pong", channel=0, max_val=1, group="delay", control="toggle",
             cc_number=19, nrpn_msb=1, nrpn_lsb=67),

    # Reverb send
    ParamDef("reverb_pre_delay", "Pre-Delay", channel=0, group="reverb",
             cc_number=20, nrpn_msb=1, nrpn_lsb=68),
    ParamDef("reverb_decay", "Decay", channel=0, default=64, group="reverb",
             cc_number=21, nrpn_msb=1, nrpn_lsb=69),
    ParamDef("reverb_mix", "Mix", channel=0, group="reverb", control="slider",
             cc_number=22, nrpn_msb=1, nrpn_lsb=70),
    ParamDef("reverb_highpass", "High-Pass", channel=0, group="reverb",
             cc_number=23, nrpn_msb=1, nrpn_lsb=71),

    # Track (CC only)
    ParamDef("track_mute", "Mute", channel=0, max_val=1, group="track", control="toggle",
             cc_number=94),
    ParamDef("track_level", "Level", channel=0, default=100, group="track", control="slider",
             cc_number=95),
]


class ParamMap:
    def __init__(self, params: list[ParamDef] | None = None) -> None:
        self._params = {p.name: p for p in (_PARAMS if params is None else params)}

    def get(self, name: str) -> ParamDef | None:
        return self._params.get(name)

    def list_all(self) -> list[ParamDef]:
        return list(self._params.values())

    def names(self) -> list[str]:
        return list(self._params.keys())

    def groups(self) -> list[str]:
        seen: list[str] = []
        for p in self._params.values():
            if p.group not in seen:
                seen.append(p.group)
        return seen

    def by_group(self, group: str) -> list[ParamDef]:
        return [p for p in self._params.values() if p.group == group]

    def cc_params(self) -> list[ParamDef]:
        return [p for p in self._params.values() if p.cc_number is not None]

    def nrpn_params(self) -> list[ParamDef]:
        return [p for p in self._params.values() if p.is_nrpn]

    def match_cc(self, channel: int, cc_number: int) -> list[ParamDef]:
        return [p for p in self._params.values()
                if p.channel == channel and p.cc_number == cc_number]

    def match_nrpn(self, channel: int, number: int) -> list[ParamDef]:
        return [p for p in self._params.values()
                if p.channel == channel and p.nrpn_number == number]


class ParamState:
    """Current value of every parameter in a ParamMap, clamped to its range."""

    def __init__(self, param_map: ParamMap) -> None:
        self._param_map = param_map
        self._values: dict[str, int] = {}
        self.reset()

    @property
    def param_map(self) -> ParamMap:
        return self._param_map

    def reset(self) -> None:
        self._values = {p.name: p.default for p in self._param_map.list_all()}

    def get(self, name: str) -> int:
        return self._values[name]

    def set(self, name: str, value: int) -> int:
        param = self._param_map.get(name)
        if param is None:
            raise KeyError(name)
        clamped = param.clamp(value)
        self._values[name] = clamped
        return clamped

    def value_for(self, channel: int, cc_number: int) -> int:
        for p in self._param_map.match_cc(channel, cc_number):
            return self._values[p.name]
        return 0

    def as_dict(self) -> dict[str, int]:
        return dict(self._values)
