"""
System Update - Confirmation Prompts
Asks the operator before state-changing steps, or auto-confirms.
"""

from abc import ABC, abstractmethod
from typing import Callable
import logging

from colorama import Fore, Style

logger = logging.getLogger(__name__)


class ConfirmPrompt(ABC):
    """Yes/no confirmation for a confirmable step."""

    @abstractmethod
    def confirm(self, message: str) -> bool:
        """Return True to proceed, False to skip the step."""
        pass


class AutoConfirm(ConfirmPrompt):
    """Always proceeds; used with --yes."""

    def confirm(self, message: str) -> bool:
        logger.info(f"Auto-confirm enabled: proceeding with {message}")
        return True


class InteractivePrompt(ConfirmPrompt):
    """
    Reads the answer from the terminal.

    Answers starting with 'y' confirm. 'n' or an empty answer decline.
    Anything else asks again. End of input counts as a decline.
    """

    def __init__(self, input_func: Callable[[str], str] = input,
                 output_func: Callable[[str], None] = print):
        self._input = input_func
        self._output = output_func

    def confirm(self, message: str) -> bool:
        while True:
            try:
                response = self._input(f"{Fore.CYAN}{message}{Style.RESET_ALL} [y/N]: ")
            except EOFError:
                logger.debug("No input available, treating as decline")
                return False

            response = response.strip()
            if response[:1] in ("y", "Y"):
                return True
            if response == "" or response[:1] in ("n", "N"):
                return False
            self._output("Please answer yes (y) or no (n).")
