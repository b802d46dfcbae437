"""
Юнит-тесты разбора параметров /start (utils/start_params.py)
"""

import sys
import os
import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from utils.start_params import parse_start_params, parse_value


@pytest.mark.parametrize("payload, expected", [
    (None, {}),
    ("   ", {}),
    ("?start=promo", {"start": "promo"}),
    ("promo", {"start": "promo"}),
    ("ref=promo", {"ref": "promo"}),
    ("name=John&age=25", {"name": "John", "age": 25}),
    ("name John age 25 vip", {"name": "John", "age": 25, "vip": True}),
    ("city=New%20York&paid=true", {"city": "New York", "paid": True}),
])
def test_parse_start_params(payload, expected):
    assert parse_start_params(payload) == expected


def test_parse_value_types():
    assert parse_value("42") == 42
    assert parse_value("2.5") == 2.5
    assert parse_value("FALSE") is False
    assert parse_value("text") == "text"
