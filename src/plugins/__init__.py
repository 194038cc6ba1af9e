"""
System Update - Plugins Package
"""

from plugins.base import (
    PackageManagerPlugin,
    CommandResult,
    UpgradablePackage,
    UpgradeResult,
    RemoveResult,
    run_command,
)
from plugins.apt import APTPlugin

__all__ = [
    "PackageManagerPlugin",
    "CommandResult",
    "UpgradablePackage",
    "UpgradeResult",
    "RemoveResult",
    "run_command",
    "APTPlugin",
]
