"""
Unit tests for ledger data types.

Tests cover:
- Field length validation
- Coin parsing
- Response attribute handling
"""

import pytest

from ledger.registration_server.errors import InvalidLengthError, LedgerError
from ledger.registration_server.models import (
    EMAIL_MAX_LENGTH,
    Coin,
    Record,
    RecordRequest,
    Response,
)


class TestRecordRequestValidation:
    """Tests for RecordRequest.validate."""

    def test_bounds_inclusive(self):
        RecordRequest("abcd", "e" * 20, "").validate()
        RecordRequest("n" * 128, "e" * EMAIL_MAX_LENGTH, "x" * 10_000).validate()

    def test_name_checked_before_email(self):
        """The first offending field is reported."""
        with pytest.raises(InvalidLengthError) as exc_info:
            RecordRequest("abc", "short", "addr").validate()

        assert exc_info.value.field_name == "name"

    def test_email_upper_bound(self):
        """Email length is capped on its own bound."""
        with pytest.raises(InvalidLengthError) as exc_info:
            RecordRequest("Alpha", "e" * (EMAIL_MAX_LENGTH + 1), "addr").validate()

        assert exc_info.value.field_name == "email"
        assert exc_info.value.max_length == EMAIL_MAX_LENGTH

    def test_length_counts_characters(self):
        """Multi-byte characters count once."""
        with pytest.raises(InvalidLengthError):
            RecordRequest("Zoë", "e" * 20, "addr").validate()
        RecordRequest("Zoëé", "e" * 20, "addr").validate()

    def test_error_shape(self):
        err = InvalidLengthError("name", 4, 128)

        assert isinstance(err, LedgerError)
        assert err.to_dict() == {
            "code": "INVALID_LENGTH",
            "message": "name must be between 4 and 128 characters",
            "details": {"field": "name", "min": 4, "max": 128},
        }


class TestCoin:
    """Tests for Coin parsing."""

    def test_parse(self):
        coin = Coin.parse("100uatom")
        assert coin == Coin(denom="uatom", amount=100)
        assert str(coin) == "100uatom"

    def test_parse_ibc_denom(self):
        coin = Coin.parse(" 5ibc/27394FB092D2ECCD ")
        assert coin.denom == "ibc/27394FB092D2ECCD"

    @pytest.mark.parametrize("value", ["uatom", "100", "-5uatom", "10u", "1.5uatom"])
    def test_parse_invalid(self, value):
        with pytest.raises(ValueError):
            Coin.parse(value)


class TestResponse:
    """Tests for Response and Record conversions."""

    def test_attributes_in_order(self):
        resp = Response(data={"id": 3}).add_attribute("method", "record").add_attribute("id", 3)

        assert resp.attribute("id") == "3"
        assert resp.attribute("missing") is None
        assert resp.to_dict() == {
            "attributes": [
                {"key": "method", "value": "record"},
                {"key": "id", "value": "3"},
            ],
            "data": {"id": 3},
        }

    def test_into_response(self):
        record = Record(created=111222333, name="Alpha", email="a" * 20, address="addr1")

        assert record.into_response(1).to_dict() == {
            "id": 1,
            "created": 111222333,
            "name": "Alpha",
            "email": "a" * 20,
            "address": "addr1",
        }
