"""Archive adapter using local filesystem."""

import json
import logging
from datetime import date
from pathlib import Path

import yaml

from ...domain.models import WorkflowOutcome
from ...domain.payload import to_payload
from ...ports.archive import ArchivePort

logger = logging.getLogger(__name__)


class FilesystemArchive(ArchivePort):
    """Archive completed runs in a yyyy/mm/ structure.

    The document JSON is named by generation code; a YAML sidecar next to
    it carries the envelope, authority seal and contingency marker.
    """

    def __init__(self, base_path: Path) -> None:
        self.base_path = base_path

    def store(self, outcome: WorkflowOutcome) -> Path:
        document = outcome.document
        if document is None or not document.generation_code:
            raise ValueError("Cannot archive an outcome without a generation code")

        doc_date = document.emission_date or date.today()
        dest_dir = self.base_path / str(doc_date.year) / f"{doc_date.month:02d}"
        dest_dir.mkdir(parents=True, exist_ok=True)

        dest = dest_dir / f"{document.generation_code}.json"
        # Amounts keep their exact decimal text
        dest.write_text(
            json.dumps(to_payload(document), default=str, ensure_ascii=False, indent=2)
        )

        transmission = outcome.transmission
        sidecar = {
            "generation_code": document.generation_code,
            "control_number": document.control_number,
            "document_type": document.document_type,
            "direction": outcome.direction.value,
            "status": outcome.status.value,
            "deferred": outcome.deferred,
            "contingency_reason": outcome.contingency_reason,
            "receipt_seal": transmission.receipt_seal if transmission else None,
            "transmission_status": transmission.status.value if transmission else None,
            "processed_at": transmission.processed_at if transmission else None,
            "warnings": [w.description for w in transmission.warnings] if transmission else [],
            "envelope": outcome.envelope,
        }
        dest.with_suffix(".yaml").write_text(
            yaml.dump(sidecar, default_flow_style=False, allow_unicode=True)
        )

        logger.info(f"Archived: {dest.relative_to(self.base_path)}")
        return dest
