"""Unit tests for engines.sql.safety: injection signatures on raw values."""

import pytest

from querybridge.core.exceptions import InjectionDetectedError
from querybridge.engines.sql import check_injection, find_injection_signature


class TestFindInjectionSignature:
    @pytest.mark.parametrize(
        "value",
        [
            "1; DROP TABLE t",
            "1 -- comment",
            "1 /* x",
            "x */",
            "1 UNION SELECT password FROM users",
            "1 union all select 1",
            "1 UnIoN DISTINCT\nSELECT 1",
        ],
    )
    def test_detected(self, value):
        assert find_injection_signature(value) is not None

    @pytest.mark.parametrize(
        "value",
        ["O'Brien", "2024-01-01", "a-b", "#tag", "union station", "select", "5", ""],
    )
    def test_legitimate_values_pass(self, value):
        assert find_injection_signature(value) is None

    def test_none(self):
        assert find_injection_signature(None) is None

    def test_numbers(self):
        assert find_injection_signature(42) is None

    def test_list_elements(self):
        assert find_injection_signature([1, "ok", "2; x"]) == "statement terminator"

    def test_dict_values(self):
        assert find_injection_signature({"a": "1 -- x"}) == "line comment"


def test_check_injection_raises_with_details():
    with pytest.raises(InjectionDetectedError) as exc:
        check_injection("id", "1; DROP TABLE t")
    assert exc.value.name == "id"
    assert exc.value.value == "1; DROP TABLE t"
    assert exc.value.signature == "statement terminator"


def test_check_injection_clean_value():
    check_injection("name", "O'Brien")
