"""Contract checks shared by the notification components."""

from __future__ import annotations

import logging

from notification_center.domain.errors import ProgrammingError


def report_misuse(message: str, *, strict: bool, logger: logging.Logger) -> None:
    """Raise :class:`ProgrammingError` in strict mode, otherwise log ``message``.

    Callers treat the offending call as a no-op when this returns.
    """

    if strict:
        raise ProgrammingError(message)
    logger.warning("Ignoring invalid call: %s", message)


__all__ = ["report_misuse"]
