import json
from core.config import AppConfig


def test_config_defaults(tmp_path):
    cfg = AppConfig(path=tmp_path / "config.json")
    assert cfg.midi_input_port is None
    assert cfg.midi_output_port is None
    assert cfg.nrpn_mode is False
    assert cfg.log_capacity == 100
    assert cfg.port_poll_ms == 1000
    assert cfg.param_write_debounce_ms == 50


def test_config_save_and_load(tmp_path):
    path = tmp_path / "config.json"
    cfg = AppConfig(path=path)
    cfg.midi_output_port = "Elektron Digitakt"
    cfg.nrpn_mode = True
    cfg.save()
    cfg2 = AppConfig(path=path)
    assert cfg2.midi_output_port == "Elektron Digitakt"
    assert cfg2.nrpn_mode is True


def test_config_does_not_crash_on_missing_file(tmp_path):
    cfg = AppConfig(path=tmp_path / "nonexistent" / "config.json")
    assert cfg.log_capacity == 100


def test_config_save_creates_parent_dirs(tmp_path):
    path = tmp_path / "nested" / "dir" / "config.json"
    AppConfig(path=path).save()
    assert json.loads(path.read_text())["port_poll_ms"] == 1000


def test_config_ignores_corrupt_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json")
    assert AppConfig(path=path).nrpn_mode is False


def test_config_ignores_unknown_keys(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"log_capacity": 25, "theme": "dark"}))
    cfg = AppConfig(path=path)
    assert cfg.log_capacity == 25
    assert not hasattr(cfg, "theme")


def test_config_ignores_values_of_wrong_type(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "log_capacity": "100",
        "port_poll_ms": True,
        "param_write_debounce_ms": 0,
        "nrpn_mode": "yes",
        "midi_output_port": 3,
        "midi_input_port": "Elektron Digitakt",
    }))
    cfg = AppConfig(path=path)
    assert cfg.log_capacity == 100
    assert cfg.port_poll_ms == 1000
    assert cfg.param_write_debounce_ms == 50
    assert cfg.nrpn_mode is False
    assert cfg.midi_output_port is None
    assert cfg.midi_input_port == "Elektron Digitakt"
