"""
The four documents every clearance submission carries.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Protocol, Tuple


class DocumentKey(str, Enum):
    APPROVAL_SHEET = "approval_sheet"
    FULL_PAPER = "full_paper"
    LONG_ABSTRACT = "long_abstract"
    JOURNAL_FORMAT = "journal_format"

    @classmethod
    def parse(cls, value: str) -> "DocumentKey":
        """Accept both snake_case keys and the form's camelCase aliases."""
        try:
            return cls(value)
        except ValueError:
            pass
        try:
            return _CAMEL_ALIASES[value]
        except KeyError:
            raise ValueError(f"Unknown document key: {value!r}") from None


_CAMEL_ALIASES: Dict[str, DocumentKey] = {
    "approvalSheet": DocumentKey.APPROVAL_SHEET,
    "fullPaper": DocumentKey.FULL_PAPER,
    "longAbstract": DocumentKey.LONG_ABSTRACT,
    "journalFormat": DocumentKey.JOURNAL_FORMAT,
}


@dataclass(frozen=True)
class RequiredDocument:
    key: DocumentKey
    label: str
    accept: Tuple[str, ...]
    description: str = ""


REQUIRED_DOCUMENTS: Tuple[RequiredDocument, ...] = (
    RequiredDocument(
        key=DocumentKey.APPROVAL_SHEET,
        label="Approval Sheet",
        accept=(".pdf",),
        description="PDF format only",
    ),
    RequiredDocument(
        key=DocumentKey.FULL_PAPER,
        label="Full Paper",
        accept=(".docx",),
        description="DOCX format only. Ethics clearance should be included in the appendix.",
    ),
    RequiredDocument(
        key=DocumentKey.LONG_ABSTRACT,
        label="Long Abstract",
        accept=(".docx",),
        description="DOCX format only",
    ),
    RequiredDocument(
        key=DocumentKey.JOURNAL_FORMAT,
        label="Journal Format",
        accept=(".docx",),
        description="DOCX format only",
    ),
)


class DocumentPayload(Protocol):
    """Anything with a filename and an async read(), e.g. FastAPI's UploadFile."""

    filename: Optional[str]

    async def read(self) -> bytes:  # pragma: no cover - protocol
        ...


@dataclass
class InMemoryDocument:
    """A document already held in memory (scripts, tests)."""

    filename: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)

    async def read(self) -> bytes:
        return self.content


def file_extension(filename: Optional[str]) -> str:
    """Lower-cased extension without the dot, or '' when there is none."""
    name = (filename or "").strip()
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[-1].lower()
