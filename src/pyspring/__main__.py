"""Entry point for running a pyspring application (python -m pyspring)."""

import argparse
import asyncio
import importlib
import inspect
import logging
import logging.config
import sys
from pathlib import Path
from typing import Any, Optional

from .app import App
from .config.setup import LOG_FORMAT
from .utils import expanded_path

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pyspring",
        description="Run a pyspring application",
        epilog="Arguments after TARGET are passed to the application as '-name value' flags.",
    )

    parser.add_argument(
        "target",
        metavar="TARGET",
        help="Application to run, 'module:attribute'; the attribute is an App "
             "or a callable returning one (default attribute: app)"
    )

    parser.add_argument(
        "--logging-config",
        type=Path,
        default=None,
        help="logging.config .ini file; replaces the -v levels"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="-v lifecycle, -vv wiring traces, -vvv third-party libraries too"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {_version()}"
    )

    return parser


def _version() -> str:
    try:
        from importlib.metadata import PackageNotFoundError, version
        return version("pyspring-core")
    except PackageNotFoundError:
        return "unknown"


_LEVELS = (logging.WARNING, logging.INFO, logging.DEBUG)
_TRACE_FORMAT = "%(asctime)s %(levelname)-8s [%(threadName)s] %(name)s (%(filename)s:%(lineno)d) %(message)s"
_QUIET_LIBRARIES = ("asyncio", "dependency_injector")


def configure_logging(verbose: int = 0, logging_config: Optional[Path] = None) -> None:
    """
    Configure logging for a command line run.

    An existing ``.ini`` file given with ``--logging-config`` wins. Otherwise
    ``-v`` logs lifecycle milestones, ``-vv`` adds wiring traces with their
    source lines and ``-vvv`` also lets asyncio and dependency-injector
    through. ``logging.level.*`` properties still apply once the application
    starts.
    """
    if logging_config is not None and logging_config.exists():
        logging.config.fileConfig(logging_config, disable_existing_loggers=False)
        return

    logging.basicConfig(
        level=_LEVELS[min(verbose, len(_LEVELS) - 1)],
        format=_TRACE_FORMAT if verbose >= 2 else LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    if verbose < 3:
        for name in _QUIET_LIBRARIES:
            logging.getLogger(name).setLevel(logging.WARNING)


def load_target(target: str) -> App:
    """
    Import ``module:attribute`` and return the application it names.

    :raises TypeError: If the attribute is neither an App nor a callable
        returning one.
    """
    module_name, _, attr = target.partition(":")
    module = importlib.import_module(module_name)
    obj: Any = module
    for part in (attr or "app").split("."):
        obj = getattr(obj, part)

    if not isinstance(obj, App) and callable(obj) and not inspect.isclass(obj):
        obj = obj()
    if not isinstance(obj, App):
        raise TypeError(f"'{target}' isn't an App or a callable returning one")
    return obj


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args, app_args = parser.parse_known_args(argv)
    if app_args and app_args[0] == "--":
        app_args = app_args[1:]

    logging_config = expanded_path(args.logging_config) if args.logging_config else None
    configure_logging(verbose=args.verbose, logging_config=logging_config)

    if str(Path.cwd()) not in sys.path:
        sys.path.insert(0, str(Path.cwd()))

    try:
        app = load_target(args.target)
    except (ImportError, AttributeError, TypeError) as e:
        logger.error("Can't load %s: %s", args.target, e)
        return 2

    app.args = list(app_args)
    try:
        return asyncio.run(app.run())
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 0


if __name__ == "__main__":
    sys.exit(main())
