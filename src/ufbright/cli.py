#!/usr/bin/env python3
"""
ufbright - Command Line Interface

Entry point for the ufbright package.
"""

import argparse
import contextlib
import logging
import logging.handlers
import os
import subprocess
import sys

from .__version__ import __version__
from .conf import ConfigError, resolve_settings, save_model
from .constants import MODEL_PROFILES
from .controller import BrightnessController
from .device_detector import (
    DeviceOpenError,
    detect_models,
    find_device,
    get_predicate,
    list_candidates,
)
from .hid_transport import create_transport
from .protocol import BrightnessDevice, BrightnessReadError, BrightnessWriteError
from .terminal import CursesKeySource, CursesProgressDisplay, TerminalSession

log = logging.getLogger(__name__)

UDEV_RULES_PATH = "/etc/udev/rules.d/99-ufbright.rules"


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="ufbright",
        description="LG UltraFine display brightness control",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    ufbright                  Adjust brightness with the arrow keys
    ufbright get              Show current brightness
    ufbright set 60           Set brightness to 60%
    ufbright detect --all     List every LG HID interface
    ufbright models           List supported display models
    ufbright select-model 24md4kl
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
    parser.add_argument("--log-file", help="Write log records to this file instead of stderr")
    parser.add_argument("--model", "-m", help="Display model (see 'ufbright models')")
    parser.add_argument("--match", choices=["name", "ids"],
                        help="Match the brightness interface by product name (default) or IDs only")
    parser.add_argument("--backend", choices=["hid", "pyusb"],
                        help="USB access backend (default: hid)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("adjust", help="Interactive adjustment (default)")
    subparsers.add_parser("get", help="Show current brightness")

    set_parser = subparsers.add_parser("set", help="Set brightness percentage")
    set_parser.add_argument("percent", type=int, help="Brightness 1-100")

    detect_parser = subparsers.add_parser("detect", help="Detect attached displays")
    detect_parser.add_argument("--all", "-a", action="store_true",
                               help="Show every HID interface of the vendor")

    subparsers.add_parser("models", help="List supported display models")

    select_parser = subparsers.add_parser("select-model", help="Remember the display model")
    select_parser.add_argument("name", help="Model name from 'ufbright models'")

    udev_parser = subparsers.add_parser("setup-udev", help="Install udev rules for device access")
    udev_parser.add_argument("--dry-run", action="store_true", help="Print rules without installing")

    args = parser.parse_args(argv)

    setup_logging(args.verbose, args.log_file)

    if args.command == "models":
        return list_models(model=args.model)
    elif args.command == "select-model":
        return select_model(args.name)
    elif args.command == "setup-udev":
        return setup_udev(dry_run=args.dry_run)

    try:
        settings = resolve_settings(model=args.model, match=args.match, backend=args.backend)
    except ConfigError as e:
        print(f"Error: {e}")
        return 2

    if args.command == "detect":
        return detect(settings, show_all=args.all)
    elif args.command == "get":
        return get_brightness(settings)
    elif args.command == "set":
        return set_brightness(settings, args.percent)

    return adjust(settings)


def setup_logging(verbose=0, log_file=None):
    """Configure the root logger from the -v count."""
    kwargs = {'filename': log_file} if log_file else {}
    if verbose >= 2:
        logging.basicConfig(level=logging.DEBUG,
                            format='[%(levelname)s] %(name)s: %(message)s', **kwargs)
    elif verbose == 1:
        logging.basicConfig(level=logging.INFO, format='[%(levelname)s] %(message)s', **kwargs)
    else:
        logging.basicConfig(level=logging.WARNING, **kwargs)


@contextlib.contextmanager
def hold_console_logging():
    """Buffer records meant for the console until the block exits.

    File handlers keep writing; console handlers get the buffered records
    replayed once the terminal is back in normal mode.
    """
    root = logging.getLogger()
    console = [h for h in root.handlers
               if isinstance(h, logging.StreamHandler)
               and not isinstance(h, logging.FileHandler)]
    if not console:
        yield
        return

    buffer = logging.handlers.MemoryHandler(
        capacity=1000, flushLevel=logging.CRITICAL + 1, target=None, flushOnClose=False)
    for handler in console:
        root.removeHandler(handler)
    root.addHandler(buffer)
    try:
        yield
    finally:
        root.removeHandler(buffer)
        for handler in console:
            root.addHandler(handler)
        for record in buffer.buffer:
            for handler in console:
                if record.levelno >= handler.level:
                    handler.handle(record)
        buffer.close()


def _format_descriptor(desc):
    """Format an enumerated interface for display."""
    name = desc.product_name or "N/A"
    maker = desc.manufacturer_name or "N/A"
    return f"[{desc.usb_id}] {name} by {maker}, interface {desc.interface_number}"


def open_device(settings):
    """Locate and open the selected model's brightness interface.

    Returns None (after telling the user) when the display is absent.

    Raises:
        DeviceOpenError: The display was found but could not be opened.
    """
    profile = settings.profile
    transport = create_transport(settings.backend)
    handle = find_device(transport, profile, get_predicate(settings.match, profile))
    if handle is None:
        print(f"No {profile.description} found "
              f"({profile.usb_id}, \"{profile.product_name}\").")
        return None
    return BrightnessDevice(handle, profile)


def adjust(settings):
    """Interactive arrow-key brightness control."""
    try:
        device = open_device(settings)
    except DeviceOpenError as e:
        print(f"Error: {e}")
        return 1
    if device is None:
        return 1

    with device:
        try:
            with hold_console_logging(), TerminalSession() as term:
                display = CursesProgressDisplay(term.screen)
                controller = BrightnessController(
                    device,
                    CursesKeySource(term.screen, on_resize=display.redraw),
                    display,
                )
                controller.run()
        except BrightnessReadError as e:
            print(f"Error: {e}")
            return 1
    return 0


def get_brightness(settings):
    """Print the current brightness."""
    try:
        device = open_device(settings)
        if device is None:
            return 1
        with device:
            raw = device.read_raw()
            step = device.steps.nearest(raw)
            log.debug("Raw brightness %d, nearest step %d", raw, step)
            print(f"brightness = {device.percent(step)}% ({step})")
        return 0
    except (DeviceOpenError, BrightnessReadError) as e:
        print(f"Error: {e}")
        return 1


def set_brightness(settings, percent):
    """Set the brightness to a percentage of the step table."""
    steps = settings.profile.steps
    if not 1 <= percent <= len(steps):
        print(f"Error: percent must be 1-{len(steps)}")
        return 2
    try:
        device = open_device(settings)
        if device is None:
            return 1
        with device:
            value = device.set_percent(percent)
            print(f"brightness = {percent}% ({value})")
        return 0
    except (DeviceOpenError, BrightnessWriteError) as e:
        print(f"Error: {e}")
        return 1


def detect(settings, show_all=False):
    """Detect attached displays."""
    transport = create_transport(settings.backend)

    if show_all:
        candidates = list_candidates(transport, settings.profile.vendor_id)
        if not candidates:
            print(f"No HID devices with vendor ID {settings.profile.vendor_id:04x}.")
            return 1
        predicate = get_predicate(settings.match, settings.profile)
        for i, desc in enumerate(candidates, 1):
            marker = "*" if predicate(desc) else " "
            print(f"{marker} [{i}] {_format_descriptor(desc)}")
        return 0

    found = detect_models(transport, MODEL_PROFILES.values(), settings.match)
    if not found:
        print("No supported LG UltraFine display detected.")
        return 1
    for profile, desc in found:
        marker = "*" if profile.name == settings.profile.name else " "
        print(f"{marker} {profile.name:<8} {profile.description} [{desc.usb_id}]")
    if all(profile.name != settings.profile.name for profile, _ in found):
        print(f"\nSelected model '{settings.profile.name}' is not attached; "
              "use 'ufbright select-model NAME'")
    return 0


def list_models(model=None):
    """List supported display models, marking the selected one."""
    try:
        selected = resolve_settings(model=model).profile.name
    except ConfigError as e:
        print(f"Error: {e}")
        return 2
    for profile in MODEL_PROFILES.values():
        marker = "*" if profile.name == selected else " "
        print(f"{marker} {profile.name:<8} {profile.description} [{profile.usb_id}]")
    return 0


def select_model(name):
    """Persist the display model in the user config."""
    try:
        save_model(name)
    except ConfigError as e:
        print(f"Error: {e}")
        return 2
    except OSError as e:
        print(f"Error: cannot write config: {e}")
        return 1
    print(f"Selected: {MODEL_PROFILES[name.strip().lower()].description}")
    return 0


def build_udev_rules():
    """udev rules granting access to the brightness interface of every model."""
    lines = ["# LG UltraFine brightness control, auto-generated by ufbright setup-udev"]
    for profile in MODEL_PROFILES.values():
        match = (f'ATTRS{{idVendor}}=="{profile.vendor_id:04x}", '
                 f'ATTRS{{idProduct}}=="{profile.product_id:04x}"')
        lines.append(
            f'# {profile.description}\n'
            f'KERNEL=="hidraw*", SUBSYSTEM=="hidraw", {match}, MODE="0666", TAG+="uaccess"\n'
            f'SUBSYSTEM=="usb", {match}, MODE="0666", TAG+="uaccess"'
        )
    return "\n\n".join(lines) + "\n"


def setup_udev(dry_run=False):
    """Generate and install udev rules for the hidraw and usb nodes."""
    rules_content = build_udev_rules()

    if dry_run:
        print(rules_content)
        print(f"# Would write to {UDEV_RULES_PATH}")
        return 0

    if os.geteuid() != 0:
        print("Error: root required. Run with:")
        print("  sudo ufbright setup-udev")
        print("\nOr preview first:")
        print("  ufbright setup-udev --dry-run")
        return 1

    try:
        with open(UDEV_RULES_PATH, "w") as f:
            f.write(rules_content)
    except OSError as e:
        print(f"Error: {e}")
        return 1
    print(f"Wrote {UDEV_RULES_PATH}")

    subprocess.run(["udevadm", "control", "--reload-rules"], check=False)
    subprocess.run(["udevadm", "trigger"], check=False)
    print("\nDone. Replug the display's USB cable for changes to take effect.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
