"""
System Update - APT Plugin
Handles package list refresh, upgrade and cleanup on Debian/Ubuntu via APT.
"""

import os
import re
from typing import Optional
import logging

from .base import (
    PackageManagerPlugin,
    CommandResult,
    CommandRunner,
    UpgradablePackage,
    UpgradeResult,
    RemoveResult,
)

logger = logging.getLogger(__name__)

# Format: package/release version arch [upgradable from: old_version]
UPGRADABLE_PATTERN = re.compile(r"^(\S+)/\S+\s+(\S+)\s+.*\[upgradable from: (\S+)\]")

# One "Unpacking <pkg> ..." line per package that dpkg replaces
UNPACKING_PATTERN = re.compile(r"^Unpacking ", re.MULTILINE)

# "0 upgraded, 0 newly installed, 3 to remove and 0 not upgraded."
TO_REMOVE_PATTERN = re.compile(r"(\d+) to remove")


def parse_upgradable(output: str) -> list[UpgradablePackage]:
    """
    Parse `apt list --upgradable` output.

    Lines that don't carry the upgradable marker ("Listing...", the apt CLI
    stability warning) are skipped.
    """
    packages = []
    for line in output.splitlines():
        match = UPGRADABLE_PATTERN.match(line.strip())
        if match:
            packages.append(UpgradablePackage(
                name=match.group(1),
                current_version=match.group(3),
                new_version=match.group(2),
            ))
    return packages


def count_upgraded(output: str) -> int:
    """Count packages unpacked during an upgrade."""
    return len(UNPACKING_PATTERN.findall(output))


def count_removed(output: str) -> int:
    """Extract the removal count from apt's summary line, 0 if absent."""
    matches = TO_REMOVE_PATTERN.findall(output)
    return int(matches[-1]) if matches else 0


class APTPlugin(PackageManagerPlugin):
    """Plugin for driving system updates through APT."""

    def __init__(self, config: dict = None, runner: Optional[CommandRunner] = None):
        """
        Initialize the APT plugin.

        Args:
            config: Optional configuration dict. 'required_commands' overrides
                    the executables checked before a run.
            runner: Command runner, replaced by a fake in tests.
        """
        super().__init__(runner)
        self.config = config or {}

    @property
    def name(self) -> str:
        return "APT"

    @property
    def required_commands(self) -> list[str]:
        return list(self.config.get("required_commands", ["apt", "apt-get"]))

    def command_env(self) -> dict:
        env = dict(os.environ)
        env.update({"DEBIAN_FRONTEND": "noninteractive", "LC_ALL": "C"})
        return env

    def refresh_package_list(self) -> CommandResult:
        """Run apt update to refresh package lists."""
        return self.run("apt", "update")

    def list_upgradable(self) -> tuple[CommandResult, list[UpgradablePackage]]:
        """Get the packages that can be upgraded."""
        result = self.run("apt", "list", "--upgradable", echo=False)
        packages = parse_upgradable(result.output) if result.success else []
        return result, packages

    def upgrade_all(self) -> UpgradeResult:
        """
        Upgrade all APT packages at once.

        Returns:
            UpgradeResult with the number of packages unpacked.
        """
        result = self.run("apt", "upgrade", "-y")
        upgraded = count_upgraded(result.output) if result.success else 0
        return UpgradeResult(command=result, packages_upgraded=upgraded)

    def remove_unused(self) -> RemoveResult:
        """Remove automatically installed packages nothing depends on."""
        result = self.run("apt", "autoremove", "-y")
        removed = count_removed(result.output) if result.success else 0
        return RemoveResult(command=result, packages_removed=removed)

    def clean_cache(self) -> CommandResult:
        """Drop cached .deb files that can no longer be downloaded."""
        return self.run("apt", "autoclean", "-y")
