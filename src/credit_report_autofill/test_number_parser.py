from datetime import date, datetime

import pytest

from credit_report_autofill.number_parser import (format_date, format_number, is_blank,
                                                  parse_number, to_display_text)


@pytest.mark.parametrize('raw, expected', [
    ('1,234,567元', 1234567),
    ('1，234，567', 1234567),
    (' 3 500万 ', 3500),
    ('12.5%', 12.5),
    ('(1,234)', -1234),
    ('-42.75', -42.75),
    ('0', 0),
    (1500, 1500),
    (12.25, 12.25),
])
def test_parse_number(raw, expected):
    assert parse_number(raw) == expected


@pytest.mark.parametrize('raw', [None, '', '   ', 'abc', '期末余额', True, float('nan'), float('inf')])
def test_parse_number_not_a_number(raw):
    assert parse_number(raw) is None


def test_parse_number_returns_int_for_integral_strings():
    assert isinstance(parse_number('1,000.00'), int)


def test_format_number():
    assert format_number(1234567.5) == '1,234,567.5'
    assert format_number(1500) == '1,500'
    assert format_number(0.125) == '0.13'
    assert format_number(float('nan')) == ''


def test_format_date():
    assert format_date(date(2024, 5, 20)) == '2024年05月20日'
    assert format_date(datetime(2015, 3, 8, 10, 30)) == '2015年03月08日'
    assert format_date('2015-03-08') == '2015年03月08日'
    assert format_date('2015年3月8日') == '2015年3月8日'
    assert format_date(None) == ''


def test_to_display_text():
    assert to_display_text(1500.0) == '1500'
    assert to_display_text(12.5) == '12.5'
    assert to_display_text(date(2020, 1, 2)) == '2020年01月02日'
    assert to_display_text(None) == ''
    assert to_display_text('文本') == '文本'


def test_is_blank():
    assert is_blank(None)
    assert is_blank('  ')
    assert not is_blank(0)
    assert not is_blank('0')
