"""
System Update - Core Package
"""

from core.engine import UpdateEngine, SessionInterrupted
from core.session import UpdateSession, ExitCode, Stage

__all__ = ["UpdateEngine", "SessionInterrupted", "UpdateSession", "ExitCode", "Stage"]
