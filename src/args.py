"""Argument parsing functionality for chartsolve."""

import argparse

from constants import RangePolicies


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="chartsolve",
        description=(
            "chartsolve - resolve chart install/uninstall transactions"
        ),
        add_help=True,
    )

    parser.add_argument("-r", "--repo",
                        dest="REPO_URL",
                        help="Chart repository base URL (serving index.yaml)",
                        action="store", type=str)
    parser.add_argument("--installed",
                        dest="INSTALLED_FILE",
                        help="JSON file listing currently installed packages",
                        action="store", type=str)
    parser.add_argument("-i", "--install",
                        dest="INSTALL",
                        help="Chart to install, as NAME or NAME:RANGE (repeatable)",
                        action="append", type=str,
                        default=[])
    parser.add_argument("-u", "--uninstall",
                        dest="UNINSTALL",
                        help="Chart to uninstall, as NAME or NAME:RANGE (repeatable)",
                        action="append", type=str,
                        default=[])
    parser.add_argument("-n", "--namespace",
                        dest="NAMESPACE",
                        help="Target namespace for requested charts",
                        action="store", type=str)

    parser.add_argument("-o", "--output",
                        dest="OUTPUT",
                        help="Path to write the plan (JSON); defaults to stdout",
                        action="store", type=str)
    parser.add_argument("--states",
                        dest="INCLUDE_STATES",
                        help="Include final package states in the plan output",
                        action="store_true")
    parser.add_argument("--dot",
                        dest="DOT_OUTPUT",
                        help="Path to write the dependency graph in Graphviz format",
                        action="store", type=str)

    parser.add_argument("--workers",
                        dest="MAX_WORKERS",
                        help="Concurrent repository lookups during graph build",
                        action="store", type=int)
    parser.add_argument("--timeout",
                        dest="TIMEOUT",
                        help="Abort resolution after this many seconds (0 disables the deadline)",
                        action="store", type=float)
    parser.add_argument("--policy",
                        dest="RANGE_POLICY",
                        help="Version picking policy for ranges",
                        action="store", type=str,
                        choices=[p.value for p in RangePolicies])
    parser.add_argument("--strict-cycles",
                        dest="STRICT_CYCLES",
                        help="Fail on dependency cycles among changing packages instead of breaking them",
                        action="store_true")
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="YAML configuration file",
                        action="store", type=str)
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str.upper,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        default="INFO")
    return parser


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    return build_parser().parse_args(argv)
