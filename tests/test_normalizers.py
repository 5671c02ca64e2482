import pytest

from normalizers import days_between, format_number, normalize_date, stringify, to_number


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1000", 1000.0),
        ("1,000.00", 1000.0),
        ("  -12.5 ", -12.5),
        ("+3", 3.0),
        (".5", 0.5),
        ("1e3", 1000.0),
        (42, 42.0),
    ],
)
def test_to_number_parses(raw, expected):
    assert to_number(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "   ", "abc", "12abc", "1_000", "nan", "inf", float("nan"), True])
def test_to_number_rejects(raw):
    assert to_number(raw) is None


@pytest.mark.parametrize("number, text", [(1000.0, "1000"), (-5.0, "-5"), (0.1, "0.1"), (1234.5, "1234.5")])
def test_format_number(number, text):
    assert format_number(number) == text


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("2024-01-05", "2024-01-05"),
        ("2024-01-05T23:30:00", "2024-01-05"),
        ("2024-01-05T23:30:00-02:00", "2024-01-06"),
        ("2024-01-05T10:00:00Z", "2024-01-05"),
        ("2024-01-05 10:00", "2024-01-05"),
        ("2024/1/5", "2024-01-05"),
        ("2024-1-5", "2024-01-05"),
        ("2024.01.05", "2024-01-05"),
        ("20240105", "2024-01-05"),
        ("01/05/2024", "2024-01-05"),
        ("1/5/24", "2024-01-05"),
        ("25/01/2024", "2024-01-25"),
        ("01-05-2024", "2024-01-05"),
        ("01/05/2024 13:45", "2024-01-05"),
        ("Jan 5, 2024", "2024-01-05"),
        ("January 5 2024", "2024-01-05"),
        ("5 Jan 2024", "2024-01-05"),
        ("05-Jan-2024", "2024-01-05"),
    ],
)
def test_normalize_date_forms(raw, expected):
    assert normalize_date(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "tomorrow", "13/13/2024", "2024-02-30", "31/02/2024"])
def test_normalize_date_rejects(raw):
    assert normalize_date(raw) is None


def test_days_between_is_absolute():
    assert days_between("2024-01-05", "2024-01-01") == 4
    assert days_between("2024-01-01", "2024-01-05") == 4
    assert days_between("2024-02-28", "2024-03-01") == 2


def test_stringify():
    assert stringify(None) == ""
    assert stringify("  x ") == "x"
    assert stringify(12) == "12"
