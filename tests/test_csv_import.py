from decimal import Decimal

import pytest

from batches.services.csv_import import CsvFormatError, CsvRow, generate_summary, parse_csv, validate_rows

CSV = '''CaseNumber,CombinedCaseNumber,CaseTitle,ContributorNickname,Amount,Month
1,20251201,"School fees, Ahmed",abu_ali,"1,500",12
1,20251201,"School fees, Ahmed",umm_sara,250.50,12
2,,Medical,abu_ali,100,12
3,,"Rent ""urgent""",zaid,0,12
4,,Short row
'''


def test_parse_rows_and_quotes():
    rows = parse_csv(CSV)
    assert len(rows) == 3
    first = rows[0]
    assert first.case_title == "School fees, Ahmed"
    assert first.amount == Decimal("1500")
    assert first.case_key == "20251201"
    assert rows[2].combined_case_number == ""
    assert rows[2].case_key == "2"


def test_non_positive_amounts_are_skipped():
    rows = parse_csv(CSV)
    assert "3" not in [r.case_number for r in rows]


def test_header_matching_is_case_insensitive():
    rows = parse_csv("casenumber,case_title,contributor,AMOUNT,month\n7,Food,zaid,20,1\n")
    assert rows[0].case_title == "Food"
    assert rows[0].combined_case_number == ""


def test_missing_columns():
    with pytest.raises(CsvFormatError) as exc:
        parse_csv("CaseNumber,CaseTitle,Amount\n1,Food,20\n")
    assert "ContributorNickname" in exc.value.message


def test_header_only_is_rejected():
    with pytest.raises(CsvFormatError):
        parse_csv("CaseNumber,CaseTitle,ContributorNickname,Amount,Month\n\n")


def test_summary():
    summary = generate_summary(parse_csv(CSV))
    assert summary["total_items"] == 3
    assert summary["unique_cases"] == 2
    assert summary["distinct_cases"] == 2
    assert summary["unique_contributors"] == 2
    assert Decimal(summary["total_amount"]) == Decimal("1850.50")
    assert summary["cases_by_month"] == {"12": 2}
    fees = summary["cases"][0]
    assert (fees["case_number"], fees["item_count"]) == ("20251201", 2)


def test_validate_rows_joins_errors():
    ok = CsvRow("1", "Food", "zaid", Decimal("5"), "1")
    bad = CsvRow("", "Food", " ", Decimal("5"), "")
    valid, invalid = validate_rows([ok, bad])
    assert valid == [ok]
    assert invalid[0]["error"] == "Case number is required; Contributor nickname is required; Month is required"


def test_doubled_quotes_inside_cell():
    content = (
        "CaseNumber,CaseTitle,ContributorNickname,Amount,Month\n"
        '9,"Rent ""urgent""",zaid,40,2\n'
    )
    rows = parse_csv(content)
    assert rows[0].case_title == 'Rent "urgent"'
    assert rows[0].amount == Decimal("40")
