"""
System Update - Plugin Base
Abstract base class for package manager plugins and the command runner they share.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional
import logging
import subprocess

logger = logging.getLogger(__name__)

# Raw command output goes through its own logger so it lands in the log file
# and on the terminal without the [INFO] tag.
output_logger = logging.getLogger("system_update.output")


@dataclass
class CommandResult:
    """Result of an external command invocation."""
    returncode: int
    output: str = ""
    error_message: Optional[str] = None

    @property
    def success(self) -> bool:
        """True when the command exited with status 0."""
        return self.returncode == 0


@dataclass
class UpgradablePackage:
    """A package for which the package manager offers a newer version."""
    name: str
    current_version: str
    new_version: str

    @property
    def display_version(self) -> str:
        """Get formatted version string for display."""
        return f"{self.current_version} → {self.new_version}"


@dataclass
class UpgradeResult:
    """Result of the upgrade-all step."""
    command: CommandResult
    packages_upgraded: int = 0


@dataclass
class RemoveResult:
    """Result of the remove-unused step."""
    command: CommandResult
    packages_removed: int = 0


def run_command(
    cmd: list[str],
    env: Optional[dict] = None,
    echo: bool = True,
) -> CommandResult:
    """
    Run a command to completion, capturing combined stdout/stderr.

    There is no timeout: the call blocks until the process exits. An
    exception raised while reading (a signal handler firing) is re-raised
    only after the child has exited.

    Args:
        cmd: Command and arguments.
        env: Full environment for the child process (inherits ours if None).
        echo: Mirror each output line to the terminal and log as it arrives.

    Returns:
        CommandResult with the exit status and the captured output.
    """
    logger.debug(f"Running: {' '.join(cmd)}")
    try:
        process = subprocess.Popen(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            encoding="utf-8",
            errors="replace",
            env=env,
        )
    except OSError as e:
        logger.debug(f"Could not start {cmd[0]}: {e}")
        return CommandResult(returncode=127, error_message=str(e))

    lines = []
    with process:
        try:
            for line in process.stdout:
                line = line.rstrip("\n")
                lines.append(line)
                if echo:
                    output_logger.info(line, extra={"raw": True})
        except BaseException:
            # The child must run to completion: closing its pipe now would
            # kill it with SIGPIPE on the next write.
            logger.warning(f"Interrupted, waiting for {cmd[0]} to finish...")
            process.communicate()
            raise
    return CommandResult(returncode=process.returncode, output="\n".join(lines))


CommandRunner = Callable[..., CommandResult]


class PackageManagerPlugin(ABC):
    """
    Abstract base class for package manager plugins.

    A plugin wraps one package manager CLI and exposes the five blocking
    operations an update session needs. Each returns the command's exit
    status and text output; deciding what a failure means is left to the
    caller.
    """

    def __init__(self, runner: Optional[CommandRunner] = None):
        self._runner = runner or run_command

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name of the package manager (e.g., 'APT')."""
        pass

    @property
    @abstractmethod
    def required_commands(self) -> list[str]:
        """Executables that must be on PATH for this plugin to work."""
        pass

    @abstractmethod
    def refresh_package_list(self) -> CommandResult:
        """Refresh package metadata from the configured repositories."""
        pass

    @abstractmethod
    def list_upgradable(self) -> tuple[CommandResult, list[UpgradablePackage]]:
        """
        Query packages with a newer version available.

        Returns:
            The raw command result and the parsed upgradable packages.
        """
        pass

    @abstractmethod
    def upgrade_all(self) -> UpgradeResult:
        """Upgrade every upgradable package without interactive prompts."""
        pass

    @abstractmethod
    def remove_unused(self) -> RemoveResult:
        """Remove packages that are no longer required."""
        pass

    @abstractmethod
    def clean_cache(self) -> CommandResult:
        """Clear obsolete downloaded package files."""
        pass

    def run(self, *cmd: str, echo: bool = True) -> CommandResult:
        """Run a command through the configured runner."""
        return self._runner(list(cmd), env=self.command_env(), echo=echo)

    def command_env(self) -> Optional[dict]:
        """Environment for child commands; None inherits the current one."""
        return None
