from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from typing import Any


class FileFormat(enum.StrEnum):
    JSON = "json"
    CSV = "csv"
    EXCEL = "excel"
    PDF = "pdf"


class FormatAdapter(ABC):
    """(De)serializes template records for import/export.

    Records are plain JSON-compatible dicts; the core never looks at the
    encoded payload itself.  ``load`` raises ``ValueError`` for payloads it
    cannot parse.
    """

    name: str
    content_type: str

    @abstractmethod
    def load(self, payload: bytes | str) -> list[dict[str, Any]]: ...

    @abstractmethod
    def dump(self, records: list[dict[str, Any]]) -> bytes: ...
