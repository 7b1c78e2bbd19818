"""
Command-line entry point.

    python -m epd2in13 cycle
    python -m epd2in13 image photo.png
    python -m epd2in13 partial icon.png --x 8 --y 40
    python -m epd2in13 clear --black
"""
import argparse
import logging
import sys
import time

from .config import PanelConfig, default_config
from .errors import EPDError

logger = logging.getLogger("epd2in13")


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    defaults = default_config()
    parser = argparse.ArgumentParser(
        prog="epd2in13", description="Drive an SSD1680 2.13\" e-paper panel",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level",
    )
    parser.add_argument("--dc-pin", default=defaults.dc_pin)
    parser.add_argument("--cs-pin", default=defaults.cs_pin)
    parser.add_argument("--rst-pin", default=defaults.rst_pin)
    parser.add_argument("--busy-pin", default=defaults.busy_pin)
    parser.add_argument(
        "--spi-frequency", type=int, default=defaults.spi_frequency, help="Hz",
    )
    parser.add_argument(
        "--busy-timeout", type=float, default=defaults.busy_timeout, help="Seconds",
    )

    actions = parser.add_subparsers(dest="action", required=True)

    cycle = actions.add_parser("cycle", help="Clear white, black, white")
    cycle.add_argument("--pause", type=float, default=1.0, help="Seconds between clears")

    clear = actions.add_parser("clear", help="Clear the panel")
    clear.add_argument("--black", action="store_true", help="Clear to black")

    image = actions.add_parser("image", help="Draw a full-panel image")
    image.add_argument("path")

    partial = actions.add_parser("partial", help="Partial-refresh a sub-image")
    partial.add_argument("path")
    partial.add_argument("--x", type=int, default=0)
    partial.add_argument("--y", type=int, default=0)

    return parser.parse_args(argv)


def _log_busy(busy: bool):
    if busy:
        logger.info("Display is refreshing...")
    else:
        logger.info("Display refresh complete")


def build_config(args: argparse.Namespace) -> PanelConfig:
    return PanelConfig(
        dc_pin=args.dc_pin,
        cs_pin=args.cs_pin,
        rst_pin=args.rst_pin,
        busy_pin=args.busy_pin,
        spi_frequency=args.spi_frequency,
        busy_timeout=args.busy_timeout,
        on_busy_change=_log_busy,
    )


def run(epd, args: argparse.Namespace):
    """Execute the selected action on an open driver."""
    if args.action == "cycle":
        epd.clear(white=True)
        time.sleep(args.pause)
        epd.clear(white=False)
        time.sleep(args.pause)
        epd.clear(white=True)
    elif args.action == "clear":
        epd.clear(white=not args.black)
    else:
        from PIL import Image

        with Image.open(args.path) as img:
            if args.action == "image":
                epd.draw_image(img)
            else:
                epd.partial_draw_image(img, args.x, args.y)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    from .drivers.ssd1680 import SSD1680

    try:
        config = build_config(args)
        epd = SSD1680.open(config)
    except EPDError as e:
        logger.error(f"Failed to initialize display: {e}")
        return 1

    try:
        with epd:
            run(epd, args)
    except (EPDError, OSError) as e:
        logger.error(f"{args.action} failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
