"""
One-shot guard shared by the completion path and every disconnect signal of a
relayed request.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class OneShotGuard:
    """
    Single-use token that is consumed by whichever of completion or abort
    happens first.

    - ``complete()`` marks a legitimate finish; later aborts are no-ops.
    - ``abort(reason)`` runs the registered teardown callbacks, once.

    The event loop runs callbacks of one request sequentially, so the check
    and set in each method cannot interleave.
    """

    def __init__(self) -> None:
        self._consumed = False
        self._aborted = False
        self._reason: Optional[str] = None
        self._teardown: list[Callable[[], None]] = []

    @property
    def consumed(self) -> bool:
        return self._consumed

    @property
    def aborted(self) -> bool:
        return self._aborted

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def on_abort(self, callback: Callable[[], None]) -> None:
        self._teardown.append(callback)

    def complete(self) -> bool:
        """Consume the guard as a normal completion. Returns False if already consumed."""
        if self._consumed:
            return False
        self._consumed = True
        return True

    def abort(self, reason: str) -> bool:
        """
        Consume the guard as an abort and tear down.

        Returns:
            True if this call performed the teardown.
        """
        if self._consumed:
            return False
        self._consumed = True
        self._aborted = True
        self._reason = reason

        for callback in self._teardown:
            try:
                callback()
            except Exception:  # noqa: BLE001
                logger.exception("Upstream teardown callback failed (%s)", reason)
        return True
