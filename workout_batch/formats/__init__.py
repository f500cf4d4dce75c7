from workout_batch.formats.base import FileFormat, FormatAdapter
from workout_batch.formats.json_format import JsonFormat
from workout_batch.formats.tabular import CsvFormat, ExcelFormat


def get_format(name: str) -> FormatAdapter:
    """Return the adapter for *name*; raises ``UnsupportedFormatError``."""
    from workout_batch.config import format_registry

    return format_registry.build(str(name))


__all__ = [
    "CsvFormat",
    "ExcelFormat",
    "FileFormat",
    "FormatAdapter",
    "JsonFormat",
    "get_format",
]
