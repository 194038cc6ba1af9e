"""
System Update - Update Engine
Sequences refresh, query, apply and cleanup against a package manager plugin.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from plugins import PackageManagerPlugin, UpgradablePackage
from core.config import RunConfig
from core.logging_config import log_blank, log_header, log_success
from core.notifications import Reporter, ReportContext, current_user
from core.prerequisites import (
    EnvironmentValidator,
    InsufficientPrivileges,
    PrerequisiteError,
)
from core.prompts import ConfirmPrompt
from core.session import ExitCode, Stage, UpdateSession

logger = logging.getLogger(__name__)


class SessionInterrupted(Exception):
    """Raised from the SIGTERM handler to unwind a running session."""


INTERRUPTS = (KeyboardInterrupt, SessionInterrupted)


class UpdateEngine:
    """
    Runs one update session.

    Stage methods take the current session and return a new one; `execute`
    threads it through them. `finalize` runs exactly once however the run
    ends, and is what the context manager calls on exit.

    Usage:
        with UpdateEngine(config, plugin, prompt) as engine:
            engine.execute()
        sys.exit(engine.exit_code)
    """

    def __init__(
        self,
        config: RunConfig,
        plugin: PackageManagerPlugin,
        prompt: ConfirmPrompt,
        reporter: Optional[Reporter] = None,
        validator: Optional[EnvironmentValidator] = None,
        log_file: Optional[Path] = None,
        started: Optional[datetime] = None,
    ):
        self.config = config
        self.plugin = plugin
        self.prompt = prompt
        self.reporter = reporter or Reporter()
        self.validator = validator or EnvironmentValidator(
            config, required_commands=plugin.required_commands
        )
        self.log_file = log_file
        self.started = started or datetime.now()
        self.session = UpdateSession()
        self.upgradable: list[UpgradablePackage] = []
        self._prerequisites_passed = False
        self._finalized = False

    def __enter__(self) -> "UpdateEngine":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        interrupted = exc_type is not None and issubclass(exc_type, INTERRUPTS)
        if interrupted and not self._finalized:
            logger.error("Update interrupted, skipping remaining steps")
            self.session = self.session.with_error()
        self.finalize()
        return interrupted

    @property
    def exit_code(self) -> int:
        return int(self.session.exit_code)

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    def refresh_lists(self, session: UpdateSession) -> UpdateSession:
        log_header(logger, "Updating Package Lists")
        logger.info(f"Running {self.plugin.name} package list refresh...")
        result = self.plugin.refresh_package_list()
        if result.success:
            log_success(logger, "Package lists updated successfully")
            return session
        logger.error(f"Failed to update package lists (exit code: {result.returncode})")
        if result.error_message:
            logger.error(result.error_message)
        return session.with_error(ExitCode.LIST_REFRESH_FAILED)

    def query_upgradable(self, session: UpdateSession) -> UpdateSession:
        log_header(logger, "Checking for Available Updates")
        result, packages = self.plugin.list_upgradable()
        if not result.success:
            logger.error(f"Failed to list upgradable packages (exit code: {result.returncode})")
            return session.with_error().with_counts(updates_available=0)

        self.upgradable = packages
        session = session.with_counts(updates_available=len(packages))
        if not packages:
            log_success(logger, "System is up to date! No updates available.")
            return session

        logger.info(f"Found {len(packages)} packages with available updates")
        log_blank(logger)
        logger.info("Upgradable packages:")
        for pkg in packages:
            logger.info(f"  {pkg.name} {pkg.display_version}", extra={"raw": True})
        log_blank(logger)
        return session

    def apply_updates(self, session: UpdateSession) -> UpdateSession:
        log_header(logger, "Applying System Updates")
        if not self.prompt.confirm("Do you want to proceed with installing updates?"):
            logger.warning("Update installation cancelled by user")
            return session.with_skipped(Stage.APPLY)

        logger.info("Installing updates... This may take a while.")
        logger.info("You can monitor progress in the output below:")
        log_blank(logger)

        result = self.plugin.upgrade_all()
        if not result.command.success:
            logger.error(f"Failed to apply updates (exit code: {result.command.returncode})")
            return session.with_error(ExitCode.APPLY_FAILED)

        log_success(logger, "Updates applied successfully")
        logger.info(f"Packages upgraded: {result.packages_upgraded}")
        return session.with_counts(packages_upgraded=result.packages_upgraded)

    def remove_unused(self, session: UpdateSession) -> UpdateSession:
        if not self.prompt.confirm("Do you want to remove unused packages?"):
            logger.warning("Package cleanup cancelled by user")
            return session.with_skipped(Stage.REMOVE_UNUSED)

        logger.info("Removing unused packages...")
        result = self.plugin.remove_unused()
        if not result.command.success:
            logger.error("Failed to remove unused packages")
            return session.with_error(ExitCode.CLEANUP_FAILED)

        log_success(logger, f"Removed {result.packages_removed} unused packages")
        return session.with_counts(packages_removed=result.packages_removed)

    def clean_cache(self, session: UpdateSession) -> UpdateSession:
        if not self.prompt.confirm("Do you want to clean the package cache?"):
            logger.warning("Package cache cleaning cancelled by user")
            return session.with_skipped(Stage.CLEAN_CACHE)

        logger.info("Cleaning package cache...")
        result = self.plugin.clean_cache()
        if not result.success:
            logger.error("Failed to clean package cache")
            return session.with_error(ExitCode.CLEANUP_FAILED)

        log_success(logger, "Package cache cleaned")
        return session

    def cleanup(self, session: UpdateSession) -> UpdateSession:
        """Both sub-steps always run; one failing does not stop the other."""
        log_header(logger, "Cleaning Up Unused Packages")
        session = self.remove_unused(session)
        return self.clean_cache(session)

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------

    def log_start(self) -> None:
        log_header(logger, "System Update Script Started")
        logger.info(f"Date: {self.started:%a %b %d %H:%M:%S %Y}")
        logger.info(f"User: {current_user()}")
        logger.info(f"Log file: {self.log_file or '(not written)'}")
        log_blank(logger)

    def run_stages(self) -> None:
        """Advance `self.session` through each stage, stopping where a stage gates the rest."""
        self.session = self.refresh_lists(self.session)
        if self.session.failed(ExitCode.LIST_REFRESH_FAILED):
            return

        self.session = self.query_upgradable(self.session)
        if self.session.updates_available == 0:
            return

        self.session = self.apply_updates(self.session)
        if self.session.failed(ExitCode.APPLY_FAILED) or Stage.APPLY in self.session.skipped:
            return

        self.session = self.cleanup(self.session)

    def execute(self) -> UpdateSession:
        """
        Validate the environment and run the stages.

        Prerequisite failures end the run with PREREQ_FAILED before any
        package command. An interrupt abandons the remaining stages and
        counts as one error.
        """
        try:
            self.log_start()
            try:
                self.config = self.validator.validate()
            except PrerequisiteError as e:
                logger.error(str(e))
                if isinstance(e, InsufficientPrivileges):
                    logger.info("Usage: sudo system-update [OPTIONS]")
                self.session = self.session.with_error(ExitCode.PREREQ_FAILED)
                return self.session

            self._prerequisites_passed = True
            log_blank(logger)
            self.run_stages()
        except INTERRUPTS:
            log_blank(logger)
            logger.error("Update interrupted, skipping remaining steps")
            self.session = self.session.with_error()
        return self.session

    def finalize(self) -> None:
        """
        Report (once prerequisites passed) and write the footer. Idempotent.

        An interrupt while reporting abandons the report; the footer is
        still written and the exit code is unchanged.
        """
        if self._finalized:
            return
        self._finalized = True

        self.session = self.session.resolve()
        try:
            if self._prerequisites_passed:
                log_blank(logger)
                context = ReportContext(log_file=self.log_file, timestamp=self.started)
                self.reporter.report(self.session, self.config.email, context)
        except INTERRUPTS:
            logger.warning("Interrupted while reporting, notification skipped")
        finally:
            self.log_footer()

    def log_footer(self) -> None:
        log_blank(logger)
        log_header(logger, "Update Script Completed")
        logger.info(f"Total errors encountered: {self.session.errors_occurred}")
        logger.info(f"Exit code: {self.exit_code}")
        if self.log_file:
            logger.info(f"Log saved to: {self.log_file}")
