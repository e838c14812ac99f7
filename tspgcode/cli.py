"""Command-line entry point: tspgcode <config.json> <file.gcode>"""

import argparse
import logging
import os
import sys

from .config import load_config
from .errors import InputError, OptimizerError
from .gcode import UnsupportedLog
from .optimizer import Optimizer, elapsed_time, output_path

logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(asctime)s][%(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(log_path, level=logging.INFO):
    """Log everything to `log_path` (replacing it) and `level` and up to stderr."""
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    file_handler = logging.FileHandler(log_path, mode="w", encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    file_handler.setLevel(logging.DEBUG)
    root.addHandler(file_handler)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    console.setLevel(level)
    root.addHandler(console)
    return file_handler, console


def check_input(path):
    if not os.path.exists(path):
        raise InputError("file {} does not exist".format(path))
    if not path.lower().endswith(".gcode"):
        raise InputError("file {} does not have a .gcode extension".format(path))


def print_stats(title, stats):
    print("\n{}:".format(title))
    print("  Extrusion distance: {:.3f} mm ({} moves)".format(stats.extrusion_distance, stats.extrude_count))
    print("  Travel distance:    {:.3f} mm ({} moves)".format(stats.travel_distance, stats.travel_count))


def run(args):
    config = load_config(args.config)
    check_input(args.gcode)

    level = logging.INFO
    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.WARNING
    handlers = setup_logging(args.gcode + ".log", level)

    try:
        with open(args.gcode + ".unsupported.log", "w", encoding="utf-8") as sink:
            unsupported = UnsupportedLog(sink)
            optimizer = Optimizer(config, unsupported=unsupported)
            result = optimizer.optimize_file(
                args.gcode,
                output=args.output or output_path(args.gcode),
                report=args.gcode + ".csv",
            )
    finally:
        for handler in handlers:
            logging.getLogger().removeHandler(handler)
            handler.close()

    if result.unsupported:
        print("{} unsupported lines, see {}.unsupported.log".format(result.unsupported, args.gcode))
    print_stats("Base G-code stats", result.before)
    print_stats("Optimized G-code stats", result.after)
    print("\nOptimization completed in {}".format(elapsed_time(result.elapsed)))
    return result


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="tspgcode", description="Shorten travel moves by reordering the islands of each layer"
    )
    parser.add_argument("config", help="Path to the JSON configuration file")
    parser.add_argument("gcode", help="Path to the G-code file")
    parser.add_argument("--output", "-o", help="Output file (default: <file>_optimized.gcode)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log debug messages to stderr")
    parser.add_argument("--quiet", "-q", action="store_true", help="Only log warnings to stderr")
    args = parser.parse_args(argv)

    try:
        run(args)
    except (OptimizerError, OSError) as e:
        print("error: {}".format(e), file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
