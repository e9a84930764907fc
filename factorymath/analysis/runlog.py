"""
Human-readable log of an analysis run.

The run log is part of the result handed back to callers. Every line is also
sent to the standard logging system so service logs show the same stages.
"""

import logging
from typing import List, Optional

SEPARATOR = '[' + '=' * 30 + ']'


class RunLog:
    """
    Collects the stage messages of one analysis run.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._lines: List[str] = []
        self._logger = logger or logging.getLogger(__name__)

    def separator(self) -> None:
        self._lines.append(SEPARATOR)

    def stage(self, message: str) -> None:
        """
        Record a stage message.

        Args:
            message: Message text
        """
        self._lines.append(message)
        self._logger.info(message)

    def warning(self, message: str) -> None:
        """
        Record a warning, prefixed so it stands out in the text.

        Args:
            message: Message text
        """
        self._lines.append(f"WARNING: {message}")
        self._logger.warning(message)

    @property
    def lines(self) -> List[str]:
        return list(self._lines)

    def text(self) -> str:
        return '\n'.join(self._lines)

    def __len__(self) -> int:
        return len(self._lines)
