"""
Tests for address validation and explorer URL parsing.
"""

import pytest

from conftest import INVALID_ADDRESS_SHORT, TETHER_ADDRESS, VALID_ADDRESS
from core.address import is_valid_address, parse_explorer_url, validate_address
from core.exceptions import ValidationError


class TestAddressValidation:

    def test_valid_addresses(self):
        assert is_valid_address(VALID_ADDRESS)
        assert is_valid_address(TETHER_ADDRESS)
        assert is_valid_address(VALID_ADDRESS.upper().replace('0X', '0x'))

    @pytest.mark.parametrize("value", [
        INVALID_ADDRESS_SHORT,
        "1234567890abcdef1234567890abcdef12345678",
        "0x1234567890abcdef1234567890abcdef1234567g",
        VALID_ADDRESS + "00",
        "",
        None,
        12345,
    ])
    def test_invalid_addresses(self, value):
        assert not is_valid_address(value)

    @pytest.mark.parametrize("value", [
        " " + VALID_ADDRESS,
        VALID_ADDRESS + "\n",
        "\t" + VALID_ADDRESS,
        f"  {VALID_ADDRESS}\n",
    ])
    def test_surrounding_whitespace_rejected(self, value):
        assert not is_valid_address(value)
        with pytest.raises(ValidationError) as exc:
            validate_address(value)
        assert exc.value.public_message == "Invalid contract address format"

    def test_validate_returns_address(self):
        assert validate_address(VALID_ADDRESS) == VALID_ADDRESS

    def test_missing_address(self):
        for value in (None, "", "   "):
            with pytest.raises(ValidationError) as exc:
                validate_address(value)
            assert exc.value.public_message == "Contract address is required"
            assert exc.value.status_code == 400

    def test_malformed_address(self):
        with pytest.raises(ValidationError) as exc:
            validate_address(INVALID_ADDRESS_SHORT)
        assert exc.value.public_message == "Invalid contract address format"
        assert INVALID_ADDRESS_SHORT in exc.value.detail


class TestExplorerUrlParsing:

    def test_bare_address(self):
        assert parse_explorer_url(VALID_ADDRESS) == ('ethereum', VALID_ADDRESS)

    def test_etherscan_url(self):
        url = f"https://etherscan.io/address/{TETHER_ADDRESS}#code"
        assert parse_explorer_url(url) == ('ethereum', TETHER_ADDRESS)

    def test_other_explorers(self):
        assert parse_explorer_url(f"https://polygonscan.com/address/{VALID_ADDRESS}") == ('polygon', VALID_ADDRESS)
        assert parse_explorer_url(f"basescan.org/address/{VALID_ADDRESS}") == ('base', VALID_ADDRESS)
        assert parse_explorer_url(f"https://www.bscscan.com/address/{VALID_ADDRESS}") == ('bsc', VALID_ADDRESS)

    def test_unknown_domain_defaults_to_ethereum(self):
        assert parse_explorer_url(f"https://example.org/address/{VALID_ADDRESS}") == ('ethereum', VALID_ADDRESS)

    def test_unparseable(self):
        assert parse_explorer_url("https://etherscan.io/tx/0xabc") == (None, None)
        assert parse_explorer_url("") == (None, None)
