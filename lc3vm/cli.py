"""
lc3vm — run LC-3 object images

Usage:
    lc3vm <image.obj> [more.obj ...] [--pc x3000] [--input FILE]
                      [--serial PORT [--baud N]] [--max-instructions N]
                      [--break ADDR ...] [--trace FILE] [--verbose]
                      [--log-file FILE]
    lc3vm --list-ports

Images are loaded in order, each at the origin stored in its first word,
so later images overlay earlier ones. Execution starts at --pc
(default x3000).

Console selection:
    default        this terminal (cbreak mode while running, restored on exit)
    --input FILE   keystrokes read from FILE, output to stdout
    --serial PORT  keyboard/display on a serial line

Exit status:
    0  program executed HALT
    1  machine fault (RTI, reserved opcode, unknown trap vector)
    2  usage / image / serial port error
    3  --max-instructions reached
    4  breakpoint reached
    130  interrupted (Ctrl-C)

Examples:
    lc3vm 2048.obj
    lc3vm os.obj rogue.obj --pc x0200
    lc3vm echo.obj --input keys.txt --max-instructions 1000000
    lc3vm hello.obj --serial /dev/ttyUSB0 --baud 115200
"""

import argparse
import logging
import sys
from contextlib import ExitStack, contextmanager
from typing import Optional

from rich.console import Console as RichConsole
from rich.logging import RichHandler

try:
    import termios
    import tty
except ImportError:  # Windows: no termios, run with the terminal as is
    termios = None
    tty = None

from . import __version__
from .config import DEFAULT_BAUD, PC_START
from .emu import LC3Machine, StopReason
from .loader import ImageError
from .periph.console import StdioConsole
from .periph.serial_console import SerialConsole

log = logging.getLogger('lc3vm.cli')

EXIT_CODES = {
    StopReason.HALT: 0,
    StopReason.ILLEGAL: 1,
    StopReason.TIMEOUT: 3,
    StopReason.BREAK: 4,
}
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130


def parse_int_arg(value: str) -> int:
    """Parse an address that may be LC-3 hex (x3000), 0x hex, or decimal."""
    value = value.strip()
    try:
        if value[:1] in ('x', 'X'):
            return int(value[1:], 16)
        if value[:2] in ('0x', '0X'):
            return int(value, 16)
        return int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an address: {value!r}")


def setup_logging(verbose: bool = False,
                  log_file: Optional[str] = None) -> logging.Logger:
    """Configure the `lc3vm` logger for one CLI run.

    Console handler (rich, on stderr so it never mixes with program output):
    WARNING+, or DEBUG+ with --verbose. Optional file handler gets DEBUG+,
    which includes one line per executed instruction.
    """
    logger = logging.getLogger('lc3vm')
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_level = logging.DEBUG if verbose else logging.WARNING
    logger.setLevel(logging.DEBUG if verbose or log_file else logging.WARNING)

    ch = RichHandler(
        level=console_level,
        console=RichConsole(stderr=True),
        show_time=True,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    logger.addHandler(ch)

    if log_file:
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        logger.addHandler(fh)

    return logger


@contextmanager
def terminal_mode(stream):
    """Put an interactive terminal into cbreak mode for the block.

    Keystrokes arrive one at a time without waiting for Enter and are not
    echoed (the IN trap echoes itself). Ctrl-C still raises
    KeyboardInterrupt. Non-terminals are left untouched.
    """
    if termios is None or not stream.isatty():
        yield
        return

    fd = stream.fileno()
    old_settings = termios.tcgetattr(fd)
    try:
        tty.setcbreak(fd)
        yield
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, old_settings)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lc3vm",
        description="LC-3 virtual machine",
    )
    parser.add_argument("images", nargs="*", metavar="IMAGE",
                        help="Object image(s) to load (.obj, big-endian)")
    parser.add_argument("--pc", type=parse_int_arg, default=PC_START,
                        help="Start address (default: x3000)")
    parser.add_argument("--input", "-i", metavar="FILE",
                        help="Read keystrokes from FILE instead of the terminal")
    parser.add_argument("--serial", metavar="PORT",
                        help="Attach the console to a serial port")
    parser.add_argument("--baud", type=int, default=DEFAULT_BAUD,
                        help=f"Serial baud rate (default: {DEFAULT_BAUD})")
    parser.add_argument("--list-ports", action="store_true",
                        help="List serial ports and exit")
    parser.add_argument("--max-instructions", type=int, default=None,
                        metavar="N", help="Stop after N instructions")
    parser.add_argument("--break", dest="breakpoints", action="append",
                        type=parse_int_arg, default=[], metavar="ADDR",
                        help="Stop before executing ADDR (repeatable)")
    parser.add_argument("--trace", metavar="FILE",
                        help="Write an instruction trace to FILE")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Debug logging on stderr")
    parser.add_argument("--log-file", metavar="FILE",
                        help="Also write a DEBUG log to FILE")
    parser.add_argument("--version", action="version",
                        version=f"lc3vm {__version__}")
    return parser


def run_machine(machine: LC3Machine, args, interactive: bool) -> StopReason:
    if args.trace:
        machine.enable_trace()
    for addr in args.breakpoints:
        machine.add_breakpoint(addr)

    try:
        if interactive:
            with terminal_mode(sys.stdin):
                return machine.run(args.max_instructions)
        return machine.run(args.max_instructions)
    finally:
        if args.trace:
            with open(args.trace, "w") as f:
                f.write(machine.get_trace() + "\n")


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose, args.log_file)

    if args.list_ports:
        for port in SerialConsole.scan_ports():
            print(port)
        return 0

    if not args.images:
        parser.error("at least one IMAGE is required")
    if args.input and args.serial:
        parser.error("--input and --serial are mutually exclusive")

    with ExitStack() as stack:
        interactive = False
        if args.serial:
            serial_console = SerialConsole(args.serial, args.baud)
            if not serial_console.open():
                print(f"lc3vm: cannot open serial port {args.serial}",
                      file=sys.stderr)
                return EXIT_USAGE
            stack.callback(serial_console.close)
            console = serial_console
        elif args.input:
            try:
                keys = stack.enter_context(open(args.input, "rb"))
            except OSError as e:
                print(f"lc3vm: {e}", file=sys.stderr)
                return EXIT_USAGE
            console = StdioConsole(stdin=keys)
        else:
            console = StdioConsole()
            interactive = True

        machine = LC3Machine(console=console)
        for image in args.images:
            try:
                machine.load_image(image)
            except (ImageError, OSError) as e:
                print(f"lc3vm: {e}", file=sys.stderr)
                return EXIT_USAGE
        machine.reset(args.pc)

        try:
            reason = run_machine(machine, args, interactive)
        except KeyboardInterrupt:
            print(file=sys.stderr)
            log.info("Interrupted")
            return EXIT_INTERRUPTED

        if reason is StopReason.ILLEGAL:
            print(f"lc3vm: {machine.fault}", file=sys.stderr)
        elif reason is not StopReason.HALT:
            print(f"lc3vm: stopped ({reason.value}) "
                  f"{machine.regs.display()}", file=sys.stderr)
        return EXIT_CODES[reason]


if __name__ == "__main__":
    sys.exit(main())
