# tests/test_smart_codes.py
"""
Tests for smart code validation.

Every rule is exercised on its own: a code that breaks exactly one rule
must be rejected with exactly that rule reported.
"""

import pytest

from universal import smart_codes
from universal.smart_codes import InvalidSmartCode, Rule


VALID_CODES = [
    "HERA.SALON.CUSTOMER.ENTITY.REGULAR.V1",
    "HERA.SALON.SALE.TXN.RETAIL.V1",
    "HERA.FIN.GL.TXN.JOURNAL.DAILY_SALES.V1",
    "HERA.UNIVERSAL.WORKFLOW.STATUS.ASSIGN.V12",
    "HERA.ABC.S1.S2.S3.S4.S5.S6.S7.V3",  # 10 segments
]


@pytest.mark.parametrize("code", VALID_CODES)
def test_valid_codes_are_accepted(code):
    result = smart_codes.validate(code)

    assert result.valid is True
    assert result.normalized == code
    assert result.errors == []


def test_lowercase_version_marker_is_normalized():
    result = smart_codes.validate("HERA.SALON.CUSTOMER.ENTITY.REGULAR.v2")

    assert result.valid is True
    assert result.normalized == "HERA.SALON.CUSTOMER.ENTITY.REGULAR.V2"


@pytest.mark.parametrize("code, rule", [
    ("ERP.SALON.CUSTOMER.ENTITY.REGULAR.V1", Rule.PREFIX),
    ("HERA.SALON.CUSTOMER.ENTITY.V1", Rule.SEGMENT_COUNT),
    ("HERA.ABC.S1.S2.S3.S4.S5.S6.S7.S8.V1", Rule.SEGMENT_COUNT),
    ("HERA.AB.CUSTOMER.ENTITY.REGULAR.V1", Rule.DOMAIN_SEGMENT),
    ("HERA.SALON_AND_SPA_GROUP.CUSTOMER.ENTITY.REGULAR.V1", Rule.DOMAIN_SEGMENT),
    ("HERA.SALON.CUSTOMER.ENTITY.regular.V1", Rule.SEGMENT_FORMAT),
    ("HERA.SALON.C.ENTITY.REGULAR.V1", Rule.SEGMENT_FORMAT),
    ("HERA.SALON.CUSTOMER.ENTITY.REGULAR.VERSION1", Rule.VERSION),
    ("HERA.SALON.CUSTOMER.ENTITY.REGULAR.V", Rule.VERSION),
])
def test_each_rule_is_reported(code, rule):
    result = smart_codes.validate(code)

    assert result.valid is False
    assert result.normalized is None
    assert result.rules_failed == [rule]


@pytest.mark.parametrize("code", [None, "", "   ", 42])
def test_non_strings_fail_the_type_rule(code):
    result = smart_codes.validate(code)

    assert result.valid is False
    assert result.rules_failed == [Rule.TYPE]


def test_several_broken_rules_are_all_reported():
    result = smart_codes.validate("hera.x.y")

    assert set(result.rules_failed) == {
        Rule.PREFIX, Rule.SEGMENT_COUNT, Rule.DOMAIN_SEGMENT, Rule.VERSION,
    }


def test_to_dict_lists_rules():
    payload = smart_codes.validate("HERA.SALON.CUSTOMER.ENTITY.REGULAR").to_dict()

    assert payload["valid"] is False
    assert {e["rule"] for e in payload["errors"]} >= {Rule.VERSION}


class TestHelpers:
    def test_normalize_raises_on_invalid(self):
        with pytest.raises(InvalidSmartCode):
            smart_codes.normalize("HERA.BAD")

    def test_version_of(self):
        assert smart_codes.version_of("HERA.SALON.SALE.TXN.RETAIL.v7") == 7

    def test_with_version(self):
        assert smart_codes.with_version("HERA.SALON.SALE.TXN.RETAIL.V1", 2) == "HERA.SALON.SALE.TXN.RETAIL.V2"

    def test_is_valid(self):
        assert smart_codes.is_valid("HERA.SALON.SALE.TXN.RETAIL.V1")
        assert not smart_codes.is_valid("HERA.SALON.SALE.V1")
