import argparse
import signal
import sys
from pathlib import Path
from PyQt6.QtCore import QCoreApplication, QTimer
from core.config import AppConfig
from core.logger import AppLogger
from midi.controller import SynthController
from midi.message_log import MessageLog
from midi.ports import INPUT, OUTPUT, PortManager
from model.library import SnapshotLibrary
from model.snapshot import ParamSnapshot


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="taktdeck",
        description="Send CC/NRPN parameter changes to a Digitakt and monitor MIDI traffic.",
    )
    parser.add_argument("--config", type=Path, help="path to config.json")
    parser.add_argument("--list", action="store_true", help="list MIDI ports and exit")
    parser.add_argument("--params", action="store_true", help="list parameters and exit")
    parser.add_argument("--input", help="input port id or name fragment")
    parser.add_argument("--output", help="output port id or name fragment")
    parser.add_argument("--nrpn", action="store_true", default=None, help="send parameters as NRPN")
    parser.add_argument("--set", action="append", default=[], metavar="NAME=VALUE",
                        help="set a parameter (repeatable)")
    parser.add_argument("--save-snapshot", metavar="NAME", help="save current values as a snapshot")
    parser.add_argument("--load-snapshot", metavar="NAME", help="send a saved snapshot")
    parser.add_argument("--once", action="store_true", help="exit after sending instead of monitoring")
    return parser.parse_args(argv)


def parse_assignment(text: str) -> tuple[str, int]:
    name, sep, value = text.partition("=")
    if not sep or not name:
        raise ValueError(f"Expected NAME=VALUE, got '{text}'")
    return name.strip(), int(value)


def _print_ports(ports: PortManager) -> None:
    for label, items in (("Inputs", ports.inputs), ("Outputs", ports.outputs)):
        print(f"{label}:")
        for port in items:
            print(f"  [{port.index}] {port.id}")


def _print_params(controller: SynthController) -> None:
    for p in controller.param_map.list_all():
        nrpn = f"{p.nrpn_msb}:{p.nrpn_lsb}" if p.is_nrpn else "-"
        cc = p.cc_number if p.cc_number is not None else "-"
        print(f"  {p.name:<18} ch {p.channel + 1:<2} cc {cc:<3} nrpn {nrpn:<6} "
              f"{p.min_val}-{p.max_val} (default {p.default})")


def main(argv: list[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    app.setApplicationName("taktdeck")

    config = AppConfig(path=args.config)
    logger = AppLogger()
    message_log = MessageLog(capacity=config.log_capacity)
    ports = PortManager(message_log, logger=logger, poll_ms=config.port_poll_ms)
    nrpn_mode = config.nrpn_mode if args.nrpn is None else args.nrpn
    controller = SynthController(
        ports, logger=logger, nrpn_mode=nrpn_mode,
        debounce_ms=config.param_write_debounce_ms,
    )
    library = SnapshotLibrary(config.path.parent)

    if args.params:
        _print_params(controller)
        return 0
    if not ports.refresh():
        return 1
    if args.list:
        _print_ports(ports)
        return 0

    message_log.entry_added.connect(lambda entry: logger.midi(entry.format()))
    try:
        return _run(args, app, config, logger, ports, controller, library)
    finally:
        ports.close()


def _run(args, app, config, logger, ports, controller, library) -> int:
    for direction, wanted in ((INPUT, args.input or config.midi_input_port),
                              (OUTPUT, args.output or config.midi_output_port)):
        if not wanted:
            continue
        port = ports.find(direction, wanted)
        if port is None:
            logger.error(f"No {direction} port matching '{wanted}'")
            return 1
        select = ports.select_input if direction == INPUT else ports.select_output
        if not select(port.id):
            return 1

    ok = True
    if args.load_snapshot:
        snapshot = library.find(args.load_snapshot)
        if snapshot is None:
            logger.error(f"No snapshot named '{args.load_snapshot}'")
            return 1
        controller.nrpn_mode = snapshot.nrpn_mode
        for name in snapshot.apply_to(controller.state):
            ok = controller.set_param(name, controller.state.get(name)) and ok

    for text in args.set:
        try:
            name, value = parse_assignment(text)
            ok = controller.set_param(name, value) and ok
        except ValueError as exc:
            logger.error(str(exc))
            return 2
        except KeyError as exc:
            logger.error(f"Unknown parameter {exc}")
            return 2

    if args.save_snapshot:
        snapshot = ParamSnapshot.capture(args.save_snapshot, controller.state, controller.nrpn_mode)
        logger.general(f"Saved snapshot to {library.save(snapshot)}")

    if args.once:
        return 0 if ok else 1

    # Let Ctrl+C shut down cleanly. Qt's event loop blocks Python's signal
    # handling, so a timer ticks periodically to give Python a chance to run.
    signal.signal(signal.SIGINT, lambda *_: app.quit())
    timer = QTimer()
    timer.start(200)
    timer.timeout.connect(lambda: None)

    ports.start_polling()
    logger.general("Monitoring MIDI traffic, Ctrl+C to quit")
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
