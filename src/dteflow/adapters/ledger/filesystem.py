"""Ledger store using YAML files on the local filesystem."""

import logging
import os
import re
from dataclasses import asdict, fields
from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from ...domain.models import MonthlyLedger
from ...errors import LedgerError
from ...ports.ledger import LedgerStorePort

logger = logging.getLogger(__name__)

PERIOD_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")
AMOUNT_FIELDS = tuple(
    f.name for f in fields(MonthlyLedger) if f.name not in ("period", "last_updated")
)


def ledger_to_dict(ledger: MonthlyLedger) -> dict[str, Any]:
    """Plain-YAML view of a ledger. Amounts are strings to keep them exact."""
    data = asdict(ledger)
    for name in AMOUNT_FIELDS:
        data[name] = str(data[name])
    data["last_updated"] = ledger.last_updated.isoformat() if ledger.last_updated else None
    return data


def ledger_from_dict(data: dict[str, Any]) -> MonthlyLedger:
    try:
        amounts = {name: Decimal(str(data.get(name, "0"))) for name in AMOUNT_FIELDS}
    except InvalidOperation as e:
        raise LedgerError(f"Corrupt ledger amount in period {data.get('period')}") from e
    last_updated = data.get("last_updated")
    return MonthlyLedger(
        period=str(data["period"]),
        last_updated=datetime.fromisoformat(last_updated) if last_updated else None,
        **amounts,
    )


class FilesystemLedgerStore(LedgerStorePort):
    """One YAML file per period at base/yyyy/mm.yaml.

    Each file also lists the generation codes already applied to it, so
    a ledger and its dedupe keys are written together.
    """

    def __init__(self, base_path: Path) -> None:
        self.base_path = base_path

    def _path(self, period: str) -> Path:
        match = PERIOD_PATTERN.match(period)
        if not match:
            raise ValueError(f"Invalid ledger period: {period!r}")
        year, month = match.groups()
        return self.base_path / year / f"{month}.yaml"

    def _load(self, period: str) -> dict[str, Any] | None:
        path = self._path(period)
        if not path.exists():
            return None
        try:
            data = yaml.safe_load(path.read_text())
        except yaml.YAMLError as e:
            raise LedgerError(f"Failed to parse ledger {path}: {e}") from e
        if not isinstance(data, dict):
            raise LedgerError(f"Ledger file {path} is not a mapping")
        return data

    def get(self, period: str) -> MonthlyLedger | None:
        data = self._load(period)
        if data is None:
            return None
        return ledger_from_dict(data)

    def put(self, ledger: MonthlyLedger, generation_code: str) -> None:
        path = self._path(ledger.period)
        existing = self._load(ledger.period) or {}
        codes = list(existing.get("generation_codes") or [])
        if generation_code not in codes:
            codes.append(generation_code)

        data = ledger_to_dict(ledger)
        data["generation_codes"] = codes

        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".yaml.tmp")
        tmp.write_text(yaml.safe_dump(data, allow_unicode=True, sort_keys=False))
        # Atomic on POSIX
        os.replace(tmp, path)
        logger.debug(f"Wrote ledger {ledger.period} ({len(codes)} documents)")

    def contains(self, period: str, generation_code: str) -> bool:
        data = self._load(period)
        if data is None:
            return False
        return generation_code in (data.get("generation_codes") or [])

    def periods(self) -> list[str]:
        if not self.base_path.exists():
            return []
        found = []
        for path in self.base_path.glob("*/*.yaml"):
            period = f"{path.parent.name}-{path.stem}"
            if PERIOD_PATTERN.match(period):
                found.append(period)
        return sorted(found)
