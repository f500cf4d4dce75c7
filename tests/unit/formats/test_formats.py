from __future__ import annotations

import json

import pytest

from workout_batch.exceptions import UnsupportedFormatError
from workout_batch.formats import CsvFormat, ExcelFormat, JsonFormat, get_format
from workout_batch.models import WorkoutTemplate

RECORDS = [
    WorkoutTemplate(
        name="Lower body",
        duration=50,
        exercises=[{"name": "squat", "sets": 5}],
        equipment=["rack", "bar"],
        tags=["strength"],
    ).model_dump(mode="json"),
    WorkoutTemplate(name="Recovery", type="agility", description="easy").model_dump(
        mode="json"
    ),
]


def test_registry_lookup():
    assert isinstance(get_format("json"), JsonFormat)
    assert isinstance(get_format("csv"), CsvFormat)
    assert isinstance(get_format("excel"), ExcelFormat)
    with pytest.raises(UnsupportedFormatError):
        get_format("pdf")


class TestJsonFormat:
    def test_load_list_or_wrapped_object(self):
        fmt = JsonFormat()
        assert fmt.load('[{"name": "A"}]') == [{"name": "A"}]
        assert fmt.load(b'{"templates": [{"name": "B"}]}') == [{"name": "B"}]

    @pytest.mark.parametrize("payload", ["not json", '{"name": "A"}', "[1, 2]"])
    def test_rejects_bad_payloads(self, payload):
        with pytest.raises(ValueError):
            JsonFormat().load(payload)

    def test_dump_is_json(self):
        assert json.loads(JsonFormat().dump(RECORDS)) == RECORDS


@pytest.mark.parametrize("fmt", [CsvFormat(), ExcelFormat()], ids=["csv", "excel"])
def test_tabular_formats_preserve_templates(fmt):
    loaded = fmt.load(fmt.dump(RECORDS))

    assert len(loaded) == 2
    for original, record in zip(RECORDS, loaded, strict=True):
        template = WorkoutTemplate.model_validate(record)
        assert template.content_dump() == WorkoutTemplate.model_validate(
            original
        ).content_dump()


def test_csv_empty_payload_has_no_records():
    assert CsvFormat().load(b"") == []


def test_excel_rejects_garbage():
    with pytest.raises(ValueError):
        ExcelFormat().load(b"definitely not a workbook")
