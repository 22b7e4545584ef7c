"""Load remote documents from an API export.

Accepts the list-documents response shape (``{"docs": [...]}``), the
``{"documents": [...]}`` variant, or a bare list.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Union

from pydantic import ValidationError

from granola_vault.core.log import get_logger
from granola_vault.errors import ExportFormatError
from granola_vault.models import RemoteDocument

logger = get_logger(__name__)

Payload = Union[dict[str, Any], list[Any]]


def _entries(payload: Payload) -> list[Any]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ("docs", "documents"):
            value = payload.get(key)
            if isinstance(value, list):
                return value
    raise ExportFormatError("Expected a list of documents or an object with a 'docs' list")


def load_documents(source: Path | str | Payload) -> list[RemoteDocument]:
    """Parse documents from a JSON export path or an already decoded payload.

    Entries that fail validation are logged and dropped; the rest load.

    Raises:
        ExportFormatError: If the file is unreadable or has no document list
    """
    if isinstance(source, (str, Path)):
        path = Path(source).expanduser()
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ExportFormatError(f"Cannot read export {path}: {exc}") from exc
    else:
        payload = source

    documents: list[RemoteDocument] = []
    for position, entry in enumerate(_entries(payload)):
        try:
            documents.append(RemoteDocument.model_validate(entry))
        except ValidationError as exc:
            logger.warning("document_invalid", position=position, error=str(exc))
    logger.debug("documents_loaded", count=len(documents))
    return documents


__all__ = ["load_documents"]
