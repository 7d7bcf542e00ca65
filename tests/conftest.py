"""
Shared test fixtures for the Contract Auditor test suite.

Provides an isolated ConfigManager, canned Etherscan responses and sample
Solidity contracts.
"""

import json
from unittest.mock import MagicMock

import pytest

from core.config_manager import ConfigManager
from core.pattern_library import reset_pattern_library


# ── Sample Solidity contract source ─────────────────────────────

SAMPLE_REENTRANT_SOLIDITY = """\
pragma solidity ^0.4.24;

contract EtherStore {
    mapping(address => uint) public balances;

    function withdraw() public {
        uint amount = balances[msg.sender];
        msg.sender.call.value(amount)("");
        balances[msg.sender] = 0;
    }
}
"""

SAMPLE_CLEAN_SOLIDITY = """\
// SPDX-License-Identifier: MIT
pragma solidity ^0.8.20;

contract Registry {
    address public owner;
    mapping(address => string) public names;

    constructor() {
        owner = msg.sender;
    }

    function register(string calldata name) external {
        names[msg.sender] = name;
    }
}
"""

SAMPLE_OWNED_SOLIDITY = """\
// SPDX-License-Identifier: MIT
pragma solidity ^0.8.20;

contract Vault {
    address public owner;

    modifier onlyOwner() {
        require(msg.sender == owner, "Not owner");
        _;
    }

    function withdraw(uint256 amount) external onlyOwner {
        (bool ok, ) = owner.call{value: amount}("");
        require(ok, "Transfer failed");
    }

    function pause() external {
        require(msg.sender == owner, "Not owner");
    }
}
"""

VALID_ADDRESS = "0x1234567890abcdef1234567890abcdef12345678"
VALID_ADDRESS_2 = "0xaabbccddaabbccddaabbccddaabbccddaabbccdd"
IMPLEMENTATION_ADDRESS = "0x9999999999999999999999999999999999999999"
TETHER_ADDRESS = "0xdAC17F958D2ee523a2206206994597C13D831ec7"
INVALID_ADDRESS_SHORT = "0x1234"


def etherscan_result(**overrides):
    """Build a getsourcecode result record."""
    record = {
        "SourceCode": SAMPLE_REENTRANT_SOLIDITY,
        "ABI": "[]",
        "ContractName": "EtherStore",
        "CompilerVersion": "v0.4.24+commit.e67f0147",
        "OptimizationUsed": "1",
        "Runs": "200",
        "ConstructorArguments": "",
        "EVMVersion": "Default",
        "Library": "",
        "LicenseType": "MIT",
        "Proxy": "0",
        "Implementation": "",
        "SwarmSource": "",
    }
    record.update(overrides)
    return record


def etherscan_response(**overrides):
    return {"status": "1", "message": "OK", "result": [etherscan_result(**overrides)]}


ETHERSCAN_UNVERIFIED_RESPONSE = etherscan_response(
    SourceCode="", ABI="Contract source code not verified", ContractName="", CompilerVersion="",
)

ETHERSCAN_RATE_LIMIT_RESPONSE = {
    "status": "0",
    "message": "NOTOK",
    "result": "Max rate limit reached",
}

ETHERSCAN_INVALID_KEY_RESPONSE = {
    "status": "0",
    "message": "NOTOK",
    "result": "Invalid API Key",
}

MULTI_FILE_BUNDLE = "{" + json.dumps({
    "language": "Solidity",
    "sources": {
        "contracts/Vault.sol": {"content": "contract Vault {}"},
        "@openzeppelin/contracts/access/Ownable.sol": {"content": "contract Ownable {}"},
        "contracts/Base.sol": {"content": "contract Base {}"},
    },
}) + "}"


def mock_http_response(payload):
    """MagicMock standing in for a requests.Response."""
    resp = MagicMock()
    resp.json.return_value = payload
    resp.raise_for_status = MagicMock()
    return resp


# ── Fixtures ────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    """Keep real credentials and settings out of the tests."""
    for var in ("ETHERSCAN_API_KEY", "ETHERSCAN_API_URL", "AUDITOR_NETWORK", "AUDITOR_RULES_FILE",
                "HOST", "PORT", "AUDITOR_DEBUG", "AUDITOR_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)
    yield
    reset_pattern_library()


@pytest.fixture
def config_manager(tmp_path):
    """ConfigManager on a temp file with a fake Etherscan key."""
    mgr = ConfigManager(config_file=str(tmp_path / "config.yaml"), use_env=False)
    mgr.config.etherscan_api_key = "test-fake-etherscan-key"
    return mgr


@pytest.fixture
def keyless_config_manager(tmp_path):
    """ConfigManager without any Etherscan key."""
    return ConfigManager(config_file=str(tmp_path / "config.yaml"), use_env=False)
