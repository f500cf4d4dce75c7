"""Spreadsheet formats backed by pandas.

One row per record.  Nested values (lists, dicts) are stored as JSON text
in their cell and decoded again on load; empty cells are dropped so the
model defaults apply.
"""

from __future__ import annotations

import io
import json
import zipfile
from abc import abstractmethod
from typing import Any

import pandas as pd

from workout_batch.formats.base import FileFormat, FormatAdapter


def _encode_cell(value: Any) -> Any:
    if isinstance(value, (list, dict)):
        return json.dumps(value, default=str)
    if value is None:
        return ""
    return value


def _decode_cell(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    text = value.strip()
    if text[:1] in ("[", "{"):
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return value
    return value


def _records_from_frame(df: pd.DataFrame) -> list[dict[str, Any]]:
    records: list[dict[str, Any]] = []
    for row in df.to_dict(orient="records"):
        records.append(
            {
                str(k): _decode_cell(v)
                for k, v in row.items()
                if not pd.isna(v) and v != ""
            }
        )
    return records


def _frame_from_records(records: list[dict[str, Any]]) -> pd.DataFrame:
    rows = [{k: _encode_cell(v) for k, v in r.items()} for r in records]
    return pd.DataFrame(rows)


class _TabularFormat(FormatAdapter):
    def load(self, payload: bytes | str) -> list[dict[str, Any]]:
        raw = payload.encode() if isinstance(payload, str) else payload
        try:
            df = self._read(io.BytesIO(raw))
        except pd.errors.EmptyDataError:
            return []
        except (ValueError, pd.errors.ParserError, zipfile.BadZipFile) as exc:
            raise ValueError(f"Invalid {self.name} payload: {exc}") from exc
        return _records_from_frame(df)

    def dump(self, records: list[dict[str, Any]]) -> bytes:
        buf = io.BytesIO()
        self._write(_frame_from_records(records), buf)
        return buf.getvalue()

    @abstractmethod
    def _read(self, buf: io.BytesIO) -> pd.DataFrame: ...

    @abstractmethod
    def _write(self, df: pd.DataFrame, buf: io.BytesIO) -> None: ...


class CsvFormat(_TabularFormat):
    name = FileFormat.CSV
    content_type = "text/csv"

    def _read(self, buf: io.BytesIO) -> pd.DataFrame:
        return pd.read_csv(buf, dtype=str, keep_default_na=False)

    def _write(self, df: pd.DataFrame, buf: io.BytesIO) -> None:
        df.to_csv(buf, index=False)


class ExcelFormat(_TabularFormat):
    name = FileFormat.EXCEL
    content_type = (
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )

    def _read(self, buf: io.BytesIO) -> pd.DataFrame:
        return pd.read_excel(buf, dtype=str, keep_default_na=False, engine="openpyxl")

    def _write(self, df: pd.DataFrame, buf: io.BytesIO) -> None:
        df.to_excel(buf, index=False, engine="openpyxl")
