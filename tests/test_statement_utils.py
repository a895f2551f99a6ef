import logging

import pandas as pd
import pytest

from fund_models import (
    FundRecord,
    HeaderNotFound,
    MissingColumns,
    UnsupportedBroker,
    UnsupportedFormat,
)
from statement_utils import (
    detect_broker,
    find_header_row,
    normalise_statement_rows,
    parse_broker_statement,
    read_statement_rows,
    resolve_statement_columns,
)


def test_merges_duplicate_lots_with_value_weighted_return(groww_rows) -> None:
    records = normalise_statement_rows(groww_rows)
    assert [r.name for r in records] == ["Nippon Small Cap", "HDFC Top 100"]

    nippon, hdfc = records
    assert nippon.current_value == 20000
    assert nippon.expected_return == 14.00
    assert nippon.target_percent == 0
    assert hdfc == FundRecord(name="HDFC Top 100", current_value=50000.0, expected_return=5.0, target_percent=0.0)


def test_header_offset_does_not_change_result(groww_rows) -> None:
    assert find_header_row(groww_rows) == 3
    without_metadata = groww_rows[3:]
    assert find_header_row(without_metadata) == 0
    assert normalise_statement_rows(without_metadata) == normalise_statement_rows(groww_rows)


def test_summary_and_zero_value_rows_are_dropped() -> None:
    header = ["Scheme Name", "Current Value", "XIRR"]
    assert normalise_statement_rows([header, ["Total", "70,000", ""]]) == []
    assert normalise_statement_rows([header, ["Grand Total Holdings", "1,000", "2%"]]) == []
    assert normalise_statement_rows([header, ["Axis Bluechip", "₹ 0", "12%"]]) == []


def test_malformed_cells_degrade_to_skipped_rows() -> None:
    rows = [
        ["Scheme Name", "Current Value", "XIRR"],
        ["Bad Fund", "InvalidNumber", "5%"],
        ["Empty Fund", "", ""],
        ["", "5,000", "3%"],
        ["   ", "5,000", "3%"],
    ]
    assert normalise_statement_rows(rows) == []


def test_short_rows_are_skipped() -> None:
    rows = [
        ["Folio", "Scheme Name", "Current Value"],
        ["123"],
        ["456", "Axis Bluechip"],
        ["789", "Parag Parikh Flexi Cap", "2,500.50"],
    ]
    records = normalise_statement_rows(rows)
    assert records == [FundRecord(name="Parag Parikh Flexi Cap", current_value=2500.5)]


def test_missing_xirr_column_yields_zero_return() -> None:
    rows = [["Scheme Name", "Current Value"], ["Quant Small Cap", "1,000"]]
    assert normalise_statement_rows(rows)[0].expected_return == 0.0


def test_invalid_xirr_cell_counts_as_zero_in_weighting() -> None:
    rows = [
        ["Scheme Name", "Current Value", "XIRR"],
        ["Mirae Large Cap", "3000", "N/A"],
        ["Mirae Large Cap", "1000", "8%"],
    ]
    record = normalise_statement_rows(rows)[0]
    assert record.current_value == 4000
    assert record.expected_return == 2.0


def test_negative_return_and_numeric_cells() -> None:
    rows = [
        ["Scheme Name", "Current Value", "XIRR"],
        ["ICICI Tech", 9000, -4.5],
        ["ICICI Tech", 1000.0, 5.5],
    ]
    record = normalise_statement_rows(rows)[0]
    assert record.current_value == 10000
    assert record.expected_return == -3.5


def test_names_are_trimmed_before_merging() -> None:
    rows = [
        ["Scheme Name", "Current Value", "XIRR"],
        ["  SBI Contra ", "100", "10"],
        ["SBI Contra", "300", "20"],
    ]
    records = normalise_statement_rows(rows)
    assert len(records) == 1
    assert records[0].current_value == 400
    assert records[0].expected_return == 17.5


def test_label_mentioned_in_a_single_metadata_cell_is_not_the_header() -> None:
    rows = [
        ["Scheme Name and Current Value are listed below"],
        ["Scheme Name", "Current Value", "XIRR"],
        ["Kotak Emerging Equity", "1,500", "11%"],
    ]
    assert find_header_row(rows) == 1
    assert normalise_statement_rows(rows)[0].name == "Kotak Emerging Equity"


def test_header_not_found() -> None:
    with pytest.raises(HeaderNotFound) as excinfo:
        normalise_statement_rows([["Just", "Random", "Data"], ["Without", "Headers", "Here"]])
    assert excinfo.value.code == "header_not_found"

    with pytest.raises(HeaderNotFound):
        normalise_statement_rows([["Scheme Name", "Some Other Column"]])

    with pytest.raises(HeaderNotFound):
        normalise_statement_rows([])


def test_missing_columns_when_label_is_not_exact() -> None:
    rows = [["Scheme Name", "Current Value (INR)", "XIRR"], ["Fund", "1,000", "1%"]]
    with pytest.raises(MissingColumns) as excinfo:
        normalise_statement_rows(rows)
    assert excinfo.value.missing == ["Current Value"]
    assert excinfo.value.code == "missing_columns"


def test_resolve_statement_columns() -> None:
    positions = resolve_statement_columns([" XIRR ", "Scheme Name", None, "Current Value"])
    assert positions == {"Scheme Name": 1, "Current Value": 3, "XIRR": 0}
    assert resolve_statement_columns(["Scheme Name", "Current Value"])["XIRR"] is None


def test_reads_csv_with_byte_order_mark(tmp_path) -> None:
    path = tmp_path / "holdings.csv"
    path.write_text(
        "Scheme Name,Current Value,XIRR\n\nUTI Nifty 50,\"1,200\",9%\n",
        encoding="utf-8-sig",
    )
    rows = read_statement_rows(str(path))
    assert rows[0][0] == "Scheme Name"
    assert len(rows) == 2
    assert parse_broker_statement(str(path)) == [
        FundRecord(name="UTI Nifty 50", current_value=1200.0, expected_return=9.0)
    ]


def test_reads_first_sheet_of_workbook(tmp_path, groww_rows) -> None:
    path = tmp_path / "groww_holdings.xlsx"
    pd.DataFrame(groww_rows).to_excel(path, header=False, index=False, engine="openpyxl")
    records = parse_broker_statement(str(path), broker="Groww")
    assert [r.name for r in records] == ["Nippon Small Cap", "HDFC Top 100"]
    assert records[0].expected_return == 14.0


def test_mislabelled_workbook_falls_back_to_csv(tmp_path) -> None:
    path = tmp_path / "holdings.xlsx"
    path.write_text("Scheme Name,Current Value\nAxis Midcap,800\n", encoding="utf-8")
    assert parse_broker_statement(str(path)) == [FundRecord(name="Axis Midcap", current_value=800.0)]


def test_unsupported_format_is_rejected_before_reading(tmp_path) -> None:
    with pytest.raises(UnsupportedFormat) as excinfo:
        read_statement_rows(str(tmp_path / "image.png"))
    assert excinfo.value.code == "unsupported_format"


def test_missing_statement_file(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        read_statement_rows(str(tmp_path / "absent.csv"))


def test_unsupported_broker(tmp_path) -> None:
    with pytest.raises(UnsupportedBroker, match="zerodha"):
        parse_broker_statement(str(tmp_path / "holdings.csv"), broker="zerodha")


def test_detect_broker_from_filename() -> None:
    assert detect_broker("/downloads/groww_holdings_2024.xlsx") == "groww"
    assert detect_broker("/downloads/Groww_statement.csv") == "groww"
    assert detect_broker("/downloads/holdings.csv", default="groww") == "groww"
    assert detect_broker("/downloads/zerodha_holdings.csv") is None


def test_reads_legacy_xls_workbook(tmp_path, groww_rows) -> None:
    xlwt = pytest.importorskip("xlwt")
    path = tmp_path / "groww_holdings.xls"
    book = xlwt.Workbook()
    sheet = book.add_sheet("Holdings")
    for r, row in enumerate(groww_rows):
        for c, value in enumerate(row):
            if value is not None:
                sheet.write(r, c, value)
    book.save(str(path))

    records = parse_broker_statement(str(path))
    assert [r.name for r in records] == ["Nippon Small Cap", "HDFC Top 100"]
    assert records[0].current_value == 20000
    assert records[0].expected_return == 14.0


def test_invalid_utf8_bytes_are_dropped_and_logged(tmp_path, caplog) -> None:
    caplog.set_level(logging.DEBUG, logger="sip_rebalancer")
    path = tmp_path / "holdings.csv"
    path.write_bytes(b"Scheme Name,Current Value\nAxis Midcap,\xa3 500\n")

    assert parse_broker_statement(str(path)) == [FundRecord(name="Axis Midcap", current_value=500.0)]
    assert "not valid UTF-8" in caplog.text
