"""
System Update - Run Report and Mail Notifications
Builds the plain-text run summary and mails it through a local mail tool.
"""

import getpass
import logging
import shutil
import socket
import subprocess
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from core.session import UpdateSession
from core.logging_config import log_header, log_success

logger = logging.getLogger(__name__)

REPORT_TEMPLATE = """\
System Update Report
====================

Server: {host}
Date: {date}
User: {user}

Update Summary:
--------------
Updates Available: {updates_available}
Packages Upgraded: {packages_upgraded}
Packages Removed: {packages_removed}
Errors Encountered: {errors_occurred}
{skipped}
Status: {status}

Full log file: {log_file}

---
This is an automated message from the System Update Script.
"""


def current_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unknown"


@dataclass
class ReportContext:
    """Host facts stamped onto every report."""
    log_file: Optional[Path]
    host: str = field(default_factory=socket.gethostname)
    user: str = field(default_factory=current_user)
    timestamp: datetime = field(default_factory=datetime.now)


def build_report(session: UpdateSession, context: ReportContext) -> str:
    """Render the summary for a session."""
    skipped = ""
    if session.skipped:
        skipped = f"Skipped by user: {', '.join(s.value for s in session.skipped)}\n"
    return REPORT_TEMPLATE.format(
        host=context.host,
        date=context.timestamp.strftime("%a %b %d %H:%M:%S %Y"),
        user=context.user,
        updates_available=session.updates_available,
        packages_upgraded=session.packages_upgraded,
        packages_removed=session.packages_removed,
        errors_occurred=session.errors_occurred,
        skipped=skipped,
        status=session.status,
        log_file=context.log_file or "(not written)",
    )


def build_subject(context: ReportContext) -> str:
    return f"System Update Report - {context.host} - {context.timestamp:%Y-%m-%d}"


class MailNotifier:
    """Sends the report through `mail`, falling back to `sendmail`."""

    def __init__(
        self,
        commands: Optional[list[str]] = None,
        which: Optional[Callable[[str], Optional[str]]] = None,
    ):
        self.commands = commands or ["mail", "sendmail"]
        self._which = which or shutil.which

    def available_command(self) -> Optional[str]:
        for cmd in self.commands:
            if self._which(cmd):
                return cmd
        return None

    def _build_command(self, tool: str, recipient: str, subject: str, body: str) -> tuple[list[str], str]:
        if tool == "sendmail":
            message = f"To: {recipient}\nSubject: {subject}\n\n{body}"
            return ["sendmail", "-t"], message
        return [tool, "-s", subject, recipient], body

    def send(self, recipient: str, subject: str, body: str) -> bool:
        """
        Send a message.

        Args:
            recipient: Destination address
            subject: Subject line
            body: Message body

        Returns:
            True if the mail tool accepted the message
        """
        tool = self.available_command()
        if tool is None:
            logger.warning("No email command available, skipping notification")
            return False

        cmd, stdin = self._build_command(tool, recipient, subject, body)
        try:
            result = subprocess.run(
                cmd,
                input=stdin,
                capture_output=True,
                text=True,
            )
        except OSError as e:
            logger.warning(f"Failed to send email notification: {e}")
            return False

        output = (result.stdout + result.stderr).strip()
        if output:
            logger.info(output, extra={"raw": True})
        if result.returncode != 0:
            logger.warning(f"Failed to send email notification ({tool} exit code: {result.returncode})")
            return False
        return True


class Reporter:
    """Logs the end-of-run summary and mails the report if configured."""

    def __init__(self, notifier: Optional[MailNotifier] = None):
        self.notifier = notifier or MailNotifier()

    def log_summary(self, session: UpdateSession, log_file: Optional[Path]) -> None:
        log_header(logger, "Summary")
        logger.info(f"Updates available: {session.updates_available}")
        logger.info(f"Packages upgraded: {session.packages_upgraded}")
        logger.info(f"Packages removed: {session.packages_removed}")
        logger.info(f"Errors encountered: {session.errors_occurred}")
        for stage in session.skipped:
            logger.info(f"Skipped by user: {stage.value}")

        if session.errors_occurred == 0:
            log_success(logger, "Update process completed successfully!")
        else:
            logger.warning(f"Update process completed with {session.errors_occurred} error(s)")
            if log_file:
                logger.warning(f"Check the log file for details: {log_file}")

    def send_notification(self, session: UpdateSession, recipient: str, context: ReportContext) -> bool:
        log_header(logger, "Sending Email Notification")
        body = build_report(session, context)
        if self.notifier.send(recipient, build_subject(context), body):
            log_success(logger, f"Email notification sent to {recipient}")
            return True
        return False

    def report(self, session: UpdateSession, recipient: Optional[str], context: ReportContext) -> None:
        """
        Summarize the session. Never raises: notification problems are
        logged as warnings and do not affect the run's outcome.
        """
        self.log_summary(session, context.log_file)
        if not recipient:
            return
        try:
            self.send_notification(session, recipient, context)
        except Exception as e:
            logger.warning(f"Email notification failed: {e}")
