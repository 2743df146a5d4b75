"""Error types shared by the serve and start flows."""
from __future__ import annotations


class FatalError(Exception):
    """A user-facing failure that aborts the current command.

    The message is shown as-is, so it should name the offending value and
    say how to fix it.
    """

    def __init__(self, message: str, exit_code: int = 1) -> None:
        super().__init__(message)
        self.exit_code = exit_code
