"""In-memory ledger store."""

import threading

from ...domain.models import MonthlyLedger
from ...ports.ledger import LedgerStorePort


class MemoryLedgerStore(LedgerStorePort):
    """Ledger store kept in process memory. Lost on exit."""

    def __init__(self) -> None:
        self._ledgers: dict[str, MonthlyLedger] = {}
        self._codes: dict[str, set[str]] = {}
        self._lock = threading.Lock()

    def get(self, period: str) -> MonthlyLedger | None:
        with self._lock:
            return self._ledgers.get(period)

    def put(self, ledger: MonthlyLedger, generation_code: str) -> None:
        with self._lock:
            self._ledgers[ledger.period] = ledger
            self._codes.setdefault(ledger.period, set()).add(generation_code)

    def contains(self, period: str, generation_code: str) -> bool:
        with self._lock:
            return generation_code in self._codes.get(period, set())

    def periods(self) -> list[str]:
        with self._lock:
            return sorted(self._ledgers)
