#!/usr/bin/env python3
"""
ArcticFox HID - Command Line Interface

Entry point for the arcticfox-hid package.
"""

import argparse
import json
import logging
import sys
import time

from .__version__ import __version__

log = logging.getLogger(__name__)

# Seconds to wait for a read on top of the request deadline
RESULT_GRACE_S = 1.0


def _setup_logging(verbose=0):
    """Configure logging from the -v count."""
    if verbose >= 2:
        logging.basicConfig(level=logging.DEBUG, format='[%(levelname)s] %(name)s: %(message)s')
        logging.getLogger('PIL').setLevel(logging.WARNING)
        logging.getLogger('usb').setLevel(logging.INFO)
    elif verbose == 1:
        logging.basicConfig(level=logging.INFO, format='[%(levelname)s] %(message)s')
    else:
        logging.basicConfig(level=logging.WARNING)


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="arcticfox",
        description="ArcticFox vape firmware USB HID tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    arcticfox detect                  List attached devices
    arcticfox monitor -n 10           Print 10 telemetry samples
    arcticfox config                  Dump configuration as JSON
    arcticfox config --backup a.bin   Save the raw configuration record
    arcticfox screenshot screen.png   Save the display contents
    arcticfox time                    Sync the device clock
    arcticfox puff 2                  Fire for 2 seconds
        """
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v, -vv)"
    )
    parser.add_argument(
        "--backend",
        choices=("auto", "pyusb", "hidapi"),
        help="USB backend (default: from settings)"
    )
    parser.add_argument(
        "--revision",
        help="Protocol revision: current or legacy (default: from settings)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("detect", help="List attached devices")

    monitor_parser = subparsers.add_parser("monitor", help="Print live telemetry")
    monitor_parser.add_argument("--count", "-n", type=int, default=0,
                                help="Number of samples (0 = until Ctrl+C)")
    monitor_parser.add_argument("--interval", "-i", type=float, default=0.5,
                                help="Seconds between samples")
    monitor_parser.add_argument("--json", action="store_true", help="One JSON object per line")

    config_parser = subparsers.add_parser("config", help="Read or restore the configuration")
    config_parser.add_argument("--output", "-o", help="Write JSON to file instead of stdout")
    config_parser.add_argument("--backup", metavar="FILE",
                               help="Save the re-encoded record (reserved tail zeroed)")
    config_parser.add_argument("--restore", metavar="FILE",
                               help="Upload a saved record after the version check")

    shot_parser = subparsers.add_parser("screenshot", help="Save the display as an image")
    shot_parser.add_argument("path", help="Output image file (e.g. screen.png)")
    shot_parser.add_argument("--scale", "-s", type=int, default=4, help="Upscale factor")

    subparsers.add_parser("restart", help="Reboot the device")

    puff_parser = subparsers.add_parser("puff", help="Fire the output")
    puff_parser.add_argument("seconds", type=int, help="Duration in seconds")

    subparsers.add_parser("time", help="Set the device clock to local time")

    reset_parser = subparsers.add_parser("reset", help="Reset settings to firmware defaults")
    reset_parser.add_argument("--yes", "-y", action="store_true",
                              help="Do not ask for confirmation")

    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "detect":
        return detect()

    options = {"backend": args.backend, "revision": args.revision}
    if args.command == "monitor":
        return monitor(args.count, args.interval, as_json=args.json, **options)
    elif args.command == "config":
        return show_config(output=args.output, backup=args.backup,
                           restore=args.restore, **options)
    elif args.command == "screenshot":
        return screenshot(args.path, scale=args.scale, **options)
    elif args.command == "restart":
        return send_command(lambda dev: dev.restart(), "Restart sent", **options)
    elif args.command == "puff":
        return send_command(lambda dev: dev.make_puff(args.seconds),
                            f"Puff {args.seconds}s sent", **options)
    elif args.command == "time":
        return send_command(lambda dev: dev.set_datetime(), "Clock set", **options)
    elif args.command == "reset":
        return reset_dataflash(confirmed=args.yes, **options)

    return 0


# =========================================================================
# Helpers
# =========================================================================

def _load_settings(backend=None, revision=None):
    """Saved settings with CLI overrides; no reconnect loop for one-shot use."""
    from arcticfox.conf import DriverSettings

    settings = DriverSettings.load()
    settings.auto_reconnect = False
    if backend:
        settings.backend = backend
    if revision:
        settings = DriverSettings.from_dict({**settings.to_dict(), "revision": revision})
    return settings


def _connect(backend=None, revision=None):
    """Open the device; prints the reason and returns None on failure."""
    from arcticfox.device import ArcticFoxDevice

    settings = _load_settings(backend, revision)
    device = ArcticFoxDevice(settings)
    errors = []
    device.on_error = errors.append
    if not device.connect():
        reason = errors[-1] if errors else "unknown error"
        print(f"Error: cannot open device: {reason}")
        return None
    device.on_error = lambda e: log.warning("Device error: %s", e)
    return device


def _wait(device, future):
    return future.result(timeout=device.settings.request_timeout + RESULT_GRACE_S)


# =========================================================================
# Commands
# =========================================================================

def detect():
    """List attached devices."""
    try:
        from arcticfox.transport import find_devices

        devices = find_devices()
        if not devices:
            print("No ArcticFox device detected.")
            return 1
        for i, dev in enumerate(devices, 1):
            serial = f" serial={dev['serial']}" if dev['serial'] else ""
            print(f"[{i}] [{dev['vid']:04x}:{dev['pid']:04x}] "
                  f"bus {dev['bus']} address {dev['address']}{serial}")
        return 0
    except Exception as e:
        print(f"Error: {e}")
        return 1


def _format_sample(data):
    batteries = " ".join(f"{v:.2f}V" for v in data.battery_voltages[:data.battery_count])
    unit = "C" if data.is_celsius else "F"
    state = "FIRING" if data.is_firing else ("charging" if data.is_charging else "idle")
    return (f"{state:8} batt {batteries}  "
            f"out {data.output_voltage:.2f}V {data.output_current:.2f}A {data.output_power:.1f}W  "
            f"coil {data.temperature}{unit} {data.resistance:.3f}Ω  "
            f"board {data.board_temperature}°")


def monitor(count=0, interval=0.5, as_json=False, backend=None, revision=None):
    """Poll telemetry."""
    device = _connect(backend, revision)
    if device is None:
        return 1
    try:
        from dataclasses import asdict

        taken = 0
        while count <= 0 or taken < count:
            data = _wait(device, device.read_monitoring_data())
            if as_json:
                print(json.dumps(asdict(data)))
            else:
                print(_format_sample(data))
            taken += 1
            time.sleep(interval)
        return 0
    except KeyboardInterrupt:
        return 0
    except Exception as e:
        print(f"Error: {e}")
        return 1
    finally:
        device.disconnect()


def show_config(output=None, backup=None, restore=None, backend=None, revision=None):
    """Dump, back up, or restore the configuration record."""
    device = _connect(backend, revision)
    if device is None:
        return 1
    try:
        if restore:
            from arcticfox.config_parser import parse_configuration

            with open(restore, 'rb') as f:
                blob = f.read()
            # same version gate as a configuration read
            parse_configuration(blob, device.revision)
            if not device.write_configuration(blob):
                print("Error: write failed")
                return 1
            print(f"Configuration restored from {restore}")
            return 0

        config = _wait(device, device.read_configuration())
        if backup:
            from arcticfox.config_writer import build_configuration

            with open(backup, 'wb') as f:
                f.write(build_configuration(config))
            print(f"Configuration saved to {backup}")

        text = json.dumps(config.to_dict(), indent=2)
        if output:
            with open(output, 'w') as f:
                f.write(text + "\n")
            print(f"Configuration written to {output}")
        elif not backup:
            print(text)
        return 0
    except Exception as e:
        print(f"Error: {e}")
        return 1
    finally:
        device.disconnect()


def screenshot(path, scale=4, backend=None, revision=None):
    """Capture the display."""
    device = _connect(backend, revision)
    if device is None:
        return 1
    try:
        from arcticfox.screen import save_screenshot

        data = _wait(device, device.screenshot())
        save_screenshot(data, path, scale=scale)
        print(f"Screenshot saved to {path}")
        return 0
    except Exception as e:
        print(f"Error: {e}")
        return 1
    finally:
        device.disconnect()


def send_command(action, message, backend=None, revision=None):
    """Run one fire-and-forget command."""
    device = _connect(backend, revision)
    if device is None:
        return 1
    try:
        if not action(device):
            print("Error: write failed")
            return 1
        print(message)
        return 0
    except Exception as e:
        print(f"Error: {e}")
        return 1
    finally:
        device.disconnect()


def reset_dataflash(confirmed=False, backend=None, revision=None):
    """Reset settings to defaults after confirmation."""
    if not confirmed:
        answer = input("Reset all device settings to defaults? [y/N] ")
        if answer.strip().lower() not in ("y", "yes"):
            print("Aborted.")
            return 1
    return send_command(lambda dev: dev.reset_dataflash(), "Settings reset", backend, revision)


if __name__ == "__main__":
    sys.exit(main())
