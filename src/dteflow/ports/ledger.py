"""Ledger store port - keyed persistence of monthly ledgers."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..domain.models import MonthlyLedger


class LedgerStorePort(ABC):
    """Interface for monthly ledger storage."""

    @abstractmethod
    def get(self, period: str) -> "MonthlyLedger | None":
        """Return the ledger for a "YYYY-MM" period, or None if never written."""
        pass

    @abstractmethod
    def put(self, ledger: "MonthlyLedger", generation_code: str) -> None:
        """Persist a ledger and remember the document that produced it."""
        pass

    @abstractmethod
    def contains(self, period: str, generation_code: str) -> bool:
        """Whether a document is already reflected in a period."""
        pass

    @abstractmethod
    def periods(self) -> list[str]:
        """All stored periods, sorted."""
        pass
