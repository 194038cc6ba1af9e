"""
System Update - Prerequisite Checks
Gates a run on privileges, operating system and required tools.
"""

import os
import shutil
import logging
from pathlib import Path
from typing import Callable, Optional

from core.config import RunConfig
from core.logging_config import log_header, log_success

logger = logging.getLogger(__name__)

OS_RELEASE_PATH = Path("/etc/os-release")


class PrerequisiteError(Exception):
    """A condition that must hold before any package command runs."""


class InsufficientPrivileges(PrerequisiteError):
    def __init__(self):
        super().__init__("This script must be run with sudo or as root")


class UnsupportedOS(PrerequisiteError):
    def __init__(self, detected: Optional[str] = None):
        self.detected = detected
        if detected is None:
            message = "Cannot detect operating system"
        else:
            message = f"Unsupported operating system: {detected}"
        super().__init__(message)


class MissingDependency(PrerequisiteError):
    def __init__(self, tools: list[str]):
        self.tools = list(tools)
        super().__init__(f"Missing required commands: {' '.join(self.tools)}")


def parse_os_release(text: str) -> dict[str, str]:
    """Parse os-release KEY=value lines, stripping quotes."""
    info = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        info[key] = value.strip().strip('"').strip("'")
    return info


class EnvironmentValidator:
    """
    Runs the prerequisite checks in order, stopping at the first failure.

    The mail check is soft: when no mail tool exists the recipient is
    dropped and the run continues.
    """

    def __init__(
        self,
        config: RunConfig,
        required_commands: Optional[list[str]] = None,
        geteuid: Optional[Callable[[], int]] = None,
        which: Optional[Callable[[str], Optional[str]]] = None,
        os_release_path: Optional[Path] = None,
    ):
        self.config = config
        self.required_commands = required_commands or config.required_commands
        self._geteuid = geteuid or os.geteuid
        self._which = which or shutil.which
        self._os_release_path = os_release_path or OS_RELEASE_PATH

    def check_privileges(self) -> None:
        logger.info("Checking privileges...")
        if self._geteuid() != 0:
            raise InsufficientPrivileges()
        log_success(logger, "Running with appropriate privileges")

    def check_os(self) -> dict[str, str]:
        logger.info("Checking operating system...")
        try:
            info = parse_os_release(self._os_release_path.read_text())
        except OSError:
            raise UnsupportedOS() from None

        os_id = info.get("ID", "").lower()
        supported = [s.lower() for s in self.config.supported_os]
        if os_id not in supported:
            raise UnsupportedOS(info.get("NAME") or os_id or "unknown")
        log_success(logger, f"{info.get('NAME', os_id)} system detected: {info.get('VERSION', 'unknown version')}")
        return info

    def check_commands(self) -> None:
        logger.info("Checking required commands...")
        missing = [cmd for cmd in self.required_commands if self._which(cmd) is None]
        if missing:
            raise MissingDependency(missing)
        log_success(logger, "All required commands available")

    def find_mail_command(self) -> Optional[str]:
        """First configured mail tool found on PATH."""
        for cmd in self.config.mail_commands:
            if self._which(cmd):
                return cmd
        return None

    def check_email(self) -> RunConfig:
        """Drop the recipient if no mail tool is available."""
        if not self.config.email:
            return self.config

        logger.info("Checking email capability...")
        if self.find_mail_command():
            log_success(logger, "Email capability available")
            return self.config

        logger.warning(f"Email requested but none of {', '.join(self.config.mail_commands)} found")
        logger.warning("Install mailutils: sudo apt install mailutils")
        logger.warning("Continuing without email notifications...")
        return self.config.without_email()

    def validate(self) -> RunConfig:
        """
        Run all checks.

        Returns:
            The config to run with (recipient cleared if mail is unavailable).

        Raises:
            PrerequisiteError: on the first failed hard check.
        """
        log_header(logger, "Running Prerequisite Checks")
        self.check_privileges()
        self.check_os()
        self.check_commands()
        config = self.check_email()
        log_success(logger, "All prerequisite checks passed")
        return config
