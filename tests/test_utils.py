import pytest

from longscribe.utils import format_short_timestamp, format_timestamp, parse_timestamp


@pytest.mark.parametrize("value, expected", [
    ("00:00", 0.0),
    ("05", 5.0),
    ("01:30", 90.0),
    ("1:02:03", 3723.0),
    ("00:01:02.5", 62.5),
    ("00:01:02,500", 62.5),
    (" 10:00 ", 600.0),
    (42, 42.0),
    (12.25, 12.25),
])
def test_parse_timestamp(value, expected):
    assert parse_timestamp(value) == expected


@pytest.mark.parametrize("value", ["", "abc", "1:2:3:4", "-00:05", -1, None, True, [1]])
def test_parse_timestamp_rejects(value):
    with pytest.raises(ValueError):
        parse_timestamp(value)


def test_format_timestamp():
    assert format_timestamp(0) == "00:00:00"
    assert format_timestamp(3723.9) == "01:02:03"
    assert format_timestamp(-4) == "00:00:00"


def test_format_short_timestamp():
    assert format_short_timestamp(90) == "01:30"
    assert format_short_timestamp(600) == "10:00"
    assert format_short_timestamp(3723) == "01:02:03"
