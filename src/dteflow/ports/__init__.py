"""Ports - interfaces to the collaborators outside the core."""

from .archive import ArchivePort
from .ledger import LedgerStorePort
from .signing import SigningPort
from .transmission import TransmissionPort

__all__ = ["ArchivePort", "LedgerStorePort", "SigningPort", "TransmissionPort"]
