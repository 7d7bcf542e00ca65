"""
Contract address validation and explorer URL parsing.
"""

import re
from typing import Any, Optional, Tuple
from urllib.parse import urlparse

from core.exceptions import ValidationError


ADDRESS_PATTERN = re.compile(r'^0x[a-fA-F0-9]{40}$')

# Explorer domain -> network name
EXPLORER_DOMAINS = {
    'etherscan.io': 'ethereum',
    'sepolia.etherscan.io': 'sepolia',
    'polygonscan.com': 'polygon',
    'arbiscan.io': 'arbitrum',
    'optimistic.etherscan.io': 'optimism',
    'bscscan.com': 'bsc',
    'basescan.org': 'base',
}


def is_valid_address(value: Any) -> bool:
    """Check if the input is a 0x-prefixed, 40 hex character address."""
    return isinstance(value, str) and ADDRESS_PATTERN.fullmatch(value) is not None


def validate_address(value: Any) -> str:
    """Return the address unchanged or raise ValidationError."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError("Contract address is required")
    if not is_valid_address(value):
        raise ValidationError("Invalid contract address format", detail=f"Rejected address: {value!r}")
    return value


def parse_explorer_url(url_or_address: str) -> Tuple[Optional[str], Optional[str]]:
    """
    Parse an explorer URL or address and return (network, address).

    Supports URLs like:
    - https://etherscan.io/address/0x123...#code
    - polygonscan.com/address/0x123...
    - Or just the address: 0x123...

    Returns (None, None) when nothing usable is found.
    """
    value = (url_or_address or '').strip()
    if is_valid_address(value):
        return ('ethereum', value)

    url = value
    if not url.startswith(('http://', 'https://')):
        url = 'https://' + url

    parsed = urlparse(url)
    address_match = re.search(r'/address/(0x[a-fA-F0-9]{40})\b', parsed.path)
    if not address_match:
        return (None, None)

    domain = parsed.netloc.lower()
    if domain.startswith('www.'):
        domain = domain[4:]
    return (EXPLORER_DOMAINS.get(domain, 'ethereum'), address_match.group(1))
