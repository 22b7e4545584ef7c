"""Domain models shared across the importer."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ImportStatus(str, Enum):
    """Classification of a remote document against the vault."""

    NEW = "NEW"
    EXISTS = "EXISTS"
    UPDATED = "UPDATED"
    CONFLICT = "CONFLICT"


class ImportStrategy(str, Enum):
    """What to do with documents that already exist locally."""

    SKIP = "skip"
    UPDATE = "update"
    CREATE_NEW = "create_new"


class DatePrefixFormat(str, Enum):
    ISO = "YYYY-MM-DD"
    US = "MM-DD-YYYY"
    EU = "DD-MM-YYYY"
    DOT = "YYYY.MM.DD"
    NONE = "none"


class Panel(BaseModel):
    """The ``last_viewed_panel`` block: ProseMirror JSON or an HTML string."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    content: Union[dict[str, Any], str, None] = None


class RemoteDocument(BaseModel):
    """A document as returned by the remote service.

    Content arrives in several redundant fields; in order of reliability:
    ``last_viewed_panel.content``, ``notes``, ``notes_markdown``, ``notes_plain``.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(min_length=1)
    title: str = ""
    created_at: str = ""
    updated_at: str = ""
    notes: Optional[dict[str, Any]] = None
    notes_markdown: Optional[str] = None
    notes_plain: Optional[str] = None
    last_viewed_panel: Optional[Panel] = None


@dataclass(frozen=True)
class VaultFile:
    """Handle to a file inside the vault, addressed by its vault-relative POSIX path."""

    path: str

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def stem(self) -> str:
        name = self.name
        return name[: -len(".md")] if name.endswith(".md") else name

    @property
    def parent(self) -> str:
        return self.path.rsplit("/", 1)[0] if "/" in self.path else ""


@dataclass(frozen=True)
class ConvertedNote:
    filename: str
    content: str
    frontmatter: dict[str, Any] = field(default_factory=dict)
    is_empty: bool = False


@dataclass(slots=True)
class LocalRecord:
    """A previously imported vault file, as seen by the last index scan."""

    file: VaultFile
    remote_id: str
    updated: str
    title: str
    locally_modified: bool = False
    modification_signals: tuple[str, ...] = ()


@dataclass(frozen=True)
class StatusCheck:
    """Result of classifying one remote document (derived, never persisted)."""

    status: ImportStatus
    reason: str
    requires_user_choice: bool = False
    existing: Optional[VaultFile] = None


@dataclass
class DisplayMetadata:
    """What the selection surface shows for a document, plus the user's choice."""

    id: str
    title: str
    import_status: StatusCheck
    created: str = ""
    updated: str = ""
    preview: str = ""
    word_count: int = 0
    visible: bool = True
    selected: bool = True


__all__ = [
    "ImportStatus",
    "ImportStrategy",
    "DatePrefixFormat",
    "Panel",
    "RemoteDocument",
    "VaultFile",
    "ConvertedNote",
    "LocalRecord",
    "StatusCheck",
    "DisplayMetadata",
]
