"""
Cancellation
------------
A cooperative cancellation signal shared between the front end and the
workers reconciling file pairs.
"""

import threading
from typing import Optional

from csv_reconcile.errors import ReconciliationCancelled


class CancellationToken:
    """
    Thread-safe flag checked by every I/O loop.

    Workers call raise_if_cancelled() once per row so a request stops
    processing promptly.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ReconciliationCancelled("Cancellation requested")


def check_cancelled(token: Optional[CancellationToken]) -> None:
    """Raise ReconciliationCancelled if a token is given and has been cancelled."""
    if token is not None:
        token.raise_if_cancelled()
