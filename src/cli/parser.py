"""
System Update - Command Line Parser
"""

import argparse
import sys

PROG = "system-update"

DESCRIPTION = """\
Interactive tool to check for and apply system updates through the package
manager, with optional email notifications and automatic package cleanup."""

EPILOG = f"""\
examples:
    # Run interactively with prompts
    sudo {PROG}

    # Run with email notification
    sudo {PROG} --email admin@example.com

    # Run automatically without prompts
    sudo {PROG} --yes --email admin@example.com

requirements:
    - Must be run with sudo/root privileges
    - Ubuntu operating system (see "supported_os" in the config file)
    - For email: mailutils or sendmail package installed

log files:
    Logs are saved to: /var/log/system-update-YYYYMMDD-HHMMSS.log

exit codes:
    0 success, 1 prerequisite failure, 2 package list refresh failed,
    3 applying updates failed, 4 cleanup failed, 5 completed with errors
"""


class UsageArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that prints full usage and exits 1 on bad arguments."""

    def error(self, message: str):
        sys.stderr.write(f"[ERROR] {message}\n\n")
        self.print_help(sys.stderr)
        self.exit(1)


def build_parser() -> argparse.ArgumentParser:
    parser = UsageArgumentParser(
        prog=PROG,
        usage=f"sudo {PROG} [OPTIONS]",
        description=DESCRIPTION,
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-e", "--email",
        metavar="EMAIL",
        help="Send notification email to specified address",
    )
    parser.add_argument(
        "-y", "--yes",
        action="store_true",
        help="Skip confirmation prompts (automatic mode)",
    )
    parser.add_argument(
        "-c", "--config",
        metavar="PATH",
        help="JSON config file (default: $SYSTEM_UPDATE_CONFIG or /etc/system-update/config.json)",
    )
    return parser


def parse_args(argv=None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    -h/--help prints usage and exits 0. A missing value after -e/--email,
    or an unknown option, prints usage and exits 1.
    """
    args = build_parser().parse_args(argv)
    if args.email is not None and not args.email.strip():
        build_parser().error("Email address not provided")
    return args
