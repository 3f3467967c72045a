"""Ledger store adapters."""

from pathlib import Path

from ...config import LedgerBackend, LedgerConfig
from ...ports.ledger import LedgerStorePort
from .filesystem import FilesystemLedgerStore
from .memory import MemoryLedgerStore

__all__ = ["FilesystemLedgerStore", "MemoryLedgerStore", "create_ledger_store"]


def create_ledger_store(config: LedgerConfig, base_path: Path) -> LedgerStorePort:
    """Create ledger store based on configuration."""
    if config.backend == LedgerBackend.FILESYSTEM:
        return FilesystemLedgerStore(base_path)
    elif config.backend == LedgerBackend.MEMORY:
        return MemoryLedgerStore()
    else:
        raise ValueError(f"Unknown ledger backend: {config.backend}")
