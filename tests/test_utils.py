from datetime import datetime, timedelta, timezone

import pytest

from teamsync.utils import StrEnum, get_current_time, parse_timestamp, render_timestamp, single_line, split_lines, style_str


class Color(StrEnum):
    red = 'red'


def test_str_enum():
    assert str(Color.red) == 'red'
    assert f'{Color.red}' == 'red'
    assert Color('red') is Color.red


@pytest.mark.parametrize(['string', 'lines'], [
    ('', []),
    ('a', ['a']),
    ('a\nb', ['a', 'b']),
    ('a\r\nb\n', ['a', 'b']),
    ('a\n\n  \nb', ['a', 'b']),
])
def test_split_lines(string, lines):
    assert split_lines(string) == lines


def test_single_line():
    assert single_line('one\ntwo\r\nthree') == 'one two three'
    assert single_line('plain') == 'plain'


@pytest.mark.parametrize(['val', 'expected'], [
    ('2025-03-01T08:30:00+00:00', datetime(2025, 3, 1, 8, 30, tzinfo=timezone.utc)),
    ('2025-03-01T08:30:00.000Z', datetime(2025, 3, 1, 8, 30, tzinfo=timezone.utc)),
    ('2025-03-01 08:30', datetime(2025, 3, 1, 8, 30, tzinfo=timezone.utc)),
    ('2025-03-01T08:30:00-05:00', datetime(2025, 3, 1, 13, 30, tzinfo=timezone.utc)),
    (datetime(2025, 3, 1), datetime(2025, 3, 1, tzinfo=timezone.utc)),
    ('', None),
    (None, None),
    ('not a time', None),
])
def test_parse_timestamp(val, expected):
    assert parse_timestamp(val) == expected


def test_timestamp_round_trip():
    dt = get_current_time()
    assert dt.tzinfo is not None
    assert parse_timestamp(render_timestamp(dt)) == dt
    dt = datetime(2025, 1, 1, 12, tzinfo=timezone(timedelta(hours=9)))
    assert render_timestamp(dt) == '2025-01-01T12:00:00+09:00'


def test_style_str():
    assert style_str('x', 'red') == '[not bold red]x[/]'
    assert style_str(3, 'blue', bold=True) == '[bold blue]3[/]'
