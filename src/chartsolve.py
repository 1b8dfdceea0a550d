"""chartsolve - resolve chart install/uninstall transactions

    Returns:
        int: Exit code
"""
import json
import logging
import os
import sys

from args import parse_args
from cli_config import apply_cli_overrides
from common.logging_utils import configure_logging, extra_context, is_debug_enabled
from constants import ConfigError, Constants, ExitCodes, load_yaml_config
from repository.helm_index import HelmIndexRepository
from solver import (
    Pkg,
    ResolutionAbortedError,
    ResolutionService,
    SolverError,
    State,
    base_fingerprint_of,
)
from versioning.parser import tokenize_rightmost_colon
from versioning.policy import get_policy
from versioning.ranges import matches


class CliError(Exception):
    """Input problem reported to the user with an exit code."""

    def __init__(self, message, exit_code=ExitCodes.FILE_ERROR):
        self.exit_code = exit_code
        super().__init__(message)


def load_installed(file_name):
    """Loads installed packages from a JSON list of serialized descriptors.

    Args:
        file_name (str): File path containing the JSON list.

    Returns:
        list: List of Pkg
    """
    try:
        with open(file_name, encoding="utf-8") as fh:
            data = json.load(fh)
    except FileNotFoundError as e:
        raise CliError(f"File not found: {e}") from e
    except (OSError, json.JSONDecodeError) as e:
        raise CliError(f"Cannot read installed packages from {file_name}: {e}") from e
    if not isinstance(data, list):
        raise CliError(f"{file_name} must contain a JSON list of packages")
    try:
        return [Pkg.from_dict(item) for item in data]
    except (KeyError, TypeError, ValueError) as e:
        raise CliError(f"Malformed package entry in {file_name}: {e}") from e


def _find_installed(service, name, version_range, namespace):
    """Installed member of a family matching the range, newest first."""
    base = base_fingerprint_of(name, namespace)
    for pkg in reversed(service.index.lookup_family(base)):
        if pkg.current_state == State.PRESENT and matches(pkg.version, version_range):
            return pkg
    return None


def build_requests(args, service):
    """Turn --install/--uninstall tokens into (fingerprint, state) pairs."""
    namespace = Constants.DEFAULT_NAMESPACE
    requests = []
    for token in args.INSTALL:
        name, spec = tokenize_rightmost_colon(token)
        pkg = service.request(name, spec or "*", namespace)
        requests.append((pkg.fingerprint, State.PRESENT))
    for token in args.UNINSTALL:
        name, spec = tokenize_rightmost_colon(token)
        pkg = _find_installed(service, name, spec or "*", namespace)
        if pkg is None:
            logging.warning("%s is not installed in namespace %s; nothing to remove.", name, namespace)
            continue
        requests.append((pkg.fingerprint, State.ABSENT))
    return requests


def write_output(text, path):
    """Write text to path, or stdout when path is empty."""
    if not path:
        sys.stdout.write(text + "\n")
        return
    try:
        with open(path, "w", encoding="utf-8") as fh:
            fh.write(text + "\n")
    except OSError as e:
        raise CliError(f"Cannot write {path}: {e}") from e
    logging.info("Wrote %s", path)


def run(args):
    """Run one resolution for parsed arguments and return an exit code."""
    logger = logging.getLogger(__name__)
    try:
        try:
            if args.CONFIG and load_yaml_config(args.CONFIG) is None:
                raise CliError(f"Config file not found: {args.CONFIG}")
            if not args.CONFIG:
                load_yaml_config()
        except ConfigError as e:
            raise CliError(str(e)) from e
        apply_cli_overrides(args)

        if not args.INSTALL and not args.UNINSTALL:
            logging.warning("Nothing requested; use --install and/or --uninstall.")
            return ExitCodes.SUCCESS.value

        repository = HelmIndexRepository(args.REPO_URL) if args.REPO_URL else None
        service = ResolutionService(
            repository,
            policy=get_policy(),
            max_workers=Constants.MAX_WORKERS,
            timeout=Constants.RESOLUTION_TIMEOUT_SEC,
            break_cycles=Constants.PLAN_BREAK_CYCLES,
        )
        if args.INSTALLED_FILE:
            installed = service.add_installed(load_installed(args.INSTALLED_FILE))
            logging.info("Loaded %d installed package(s).", len(installed))

        requests = build_requests(args, service)
        plan = service.resolve(requests)

        if args.DOT_OUTPUT:
            write_output(service.graph.to_dot().rstrip("\n"), args.DOT_OUTPUT)
        write_output(plan.to_json(include_states=args.INCLUDE_STATES, indent=2), args.OUTPUT)
        return ExitCodes.SUCCESS.value
    except CliError as e:
        logging.error("%s", e)
        return e.exit_code.value
    except ResolutionAbortedError as e:
        logging.error("%s", e)
        return ExitCodes.CONNECTION_ERROR.value
    except SolverError as e:
        logging.error("%s", e)
        if is_debug_enabled(logger):
            logger.debug(
                "Resolution failed",
                extra=extra_context(event="function_exit", component="cli", action="run", outcome="error", error=e.to_dict())
            )
        return ExitCodes.RESOLUTION_ERROR.value


def main(argv=None):
    """Main function of the program."""
    args = parse_args(argv)
    # Honor CLI --loglevel by passing it to centralized logger via env
    if getattr(args, "LOG_LEVEL", None):
        os.environ[Constants.LOG_LEVEL_ENV] = str(args.LOG_LEVEL).upper()
    configure_logging()
    sys.exit(run(args))


if __name__ == "__main__":
    main()
