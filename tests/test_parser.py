from __future__ import annotations

import pytest

from catalog_runner.errors import DataFormatError
from catalog_runner.parser import (
    autodetect_delimiter,
    normalize_decimal,
    parse_csv_rows,
    unwrap_records,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("12,50", 12.50),
        ("1.234,56", 1234.56),
        ("1234.56", 1234.56),
        ("1.234.567,8", 1234567.8),
        (" 7,5 ", 7.5),
        ("1 234,00", 1234.0),
        (3, 3.0),
    ],
)
def test_normalize_decimal(raw: object, expected: float) -> None:
    assert normalize_decimal(raw) == pytest.approx(expected)


def test_normalize_decimal_passes_through_non_numeric() -> None:
    assert normalize_decimal("consultar") == "consultar"
    assert normalize_decimal(None) is None


@pytest.mark.parametrize(
    "header, expected",
    [
        ("itemCode;PVP;Nombre", ";"),
        ("itemCode,PVP,Nombre", ","),
        ("itemCode\tPVP", "\t"),
        ("a,b;c", ";"),
    ],
)
def test_autodetect_delimiter(header: str, expected: str) -> None:
    assert autodetect_delimiter(header) == expected


def test_parse_csv_rows_handles_quotes_blank_lines_and_short_rows() -> None:
    text = '\ufeff itemCode ; PVP ;Nombre\r\nA1;"12,50";"Drill; 18V"\r\n\r\nB2;3,10\r\n'

    rows = parse_csv_rows(text)

    assert rows == [
        {"itemCode": "A1", "PVP": "12,50", "Nombre": "Drill; 18V"},
        {"itemCode": "B2", "PVP": "3,10", "Nombre": None},
    ]


def test_parse_csv_rows_empty_body() -> None:
    assert parse_csv_rows("") == []
    assert parse_csv_rows("sku,pvp\n") == []


def test_unwrap_records_bare_list() -> None:
    assert unwrap_records([{"a": 1}], "getStock") == [{"a": 1}]


def test_unwrap_records_follows_priority_order() -> None:
    payload = {"items": [{"from": "items"}], "data": [{"from": "data"}]}

    assert unwrap_records(payload, "getStock") == [{"from": "data"}]


def test_unwrap_records_nested_wrapper() -> None:
    payload = {"data": {"total": 1, "items": [{"itemCode": "A1"}]}}

    assert unwrap_records(payload, "getStock") == [{"itemCode": "A1"}]


def test_unwrap_records_rejects_scalar_lists() -> None:
    with pytest.raises(DataFormatError, match="does not contain objects"):
        unwrap_records(["A1", "B2"], "getStock", body='["A1", "B2"]')


def test_unwrap_records_empty_list_is_valid() -> None:
    assert unwrap_records({"data": []}, "getStock") == []
