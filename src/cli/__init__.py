"""
System Update - Command Line Entry Point
"""

import logging
import signal
import sys
from contextlib import contextmanager
from datetime import datetime
from typing import Optional

from cli.parser import parse_args
from core.config import load_config, resolve_config_path
from core.engine import SessionInterrupted, UpdateEngine
from core.logging_config import setup_logging
from core.notifications import MailNotifier, Reporter
from core.prompts import AutoConfirm, ConfirmPrompt, InteractivePrompt
from plugins import APTPlugin, PackageManagerPlugin

logger = logging.getLogger(__name__)


def _raise_interrupted(signum, frame):
    raise SessionInterrupted(f"Received signal {signal.Signals(signum).name}")


@contextmanager
def interrupt_handlers():
    """Turn SIGTERM into SessionInterrupted for the duration of a run."""
    previous = signal.signal(signal.SIGTERM, _raise_interrupted)
    try:
        yield
    finally:
        signal.signal(signal.SIGTERM, previous)


def main(
    argv: Optional[list[str]] = None,
    plugin: Optional[PackageManagerPlugin] = None,
    prompt: Optional[ConfirmPrompt] = None,
) -> int:
    """
    Run one update session and return its exit code.

    Args:
        argv: Command-line arguments (sys.argv[1:] if None).
        plugin: Package manager plugin (APT if None).
        prompt: Confirmation prompt (derived from --yes if None).
    """
    args = parse_args(argv)
    config = load_config(
        resolve_config_path(args.config),
        email=args.email,
        auto_yes=args.yes,
    )

    started = datetime.now()
    log_file = setup_logging(config.log_file_for(started))

    if plugin is None:
        plugin = APTPlugin({"required_commands": config.required_commands})
    if prompt is None:
        prompt = AutoConfirm() if config.auto_yes else InteractivePrompt()

    reporter = Reporter(MailNotifier(config.mail_commands))
    with interrupt_handlers():
        with UpdateEngine(config, plugin, prompt, reporter=reporter,
                          log_file=log_file, started=started) as engine:
            engine.execute()
    return engine.exit_code


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


__all__ = ["main", "run"]
