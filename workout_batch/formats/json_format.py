from __future__ import annotations

import json
from typing import Any

from workout_batch.formats.base import FileFormat, FormatAdapter


class JsonFormat(FormatAdapter):
    """A JSON array of records, or an object with a ``templates`` array."""

    name = FileFormat.JSON
    content_type = "application/json"

    def load(self, payload: bytes | str) -> list[dict[str, Any]]:
        try:
            data = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ValueError(f"Invalid JSON payload: {exc}") from exc

        if isinstance(data, dict) and "templates" in data:
            data = data["templates"]
        if not isinstance(data, list) or not all(isinstance(r, dict) for r in data):
            raise ValueError("JSON payload must be a list of objects")
        return data

    def dump(self, records: list[dict[str, Any]]) -> bytes:
        return json.dumps(records, indent=2, default=str).encode()
