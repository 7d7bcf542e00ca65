#!/usr/bin/env python3
"""
Etherscan Contract Source Code Fetcher

Fetches verified smart contract source code from the Etherscan v2
multichain API and normalizes it into a single text blob for scanning.
"""

import json
import logging
import time
from collections import OrderedDict
from typing import Any, Dict, List, Optional, Tuple

import requests

from core.address import validate_address
from core.config_manager import ConfigManager
from core.exceptions import NotFoundError, UpstreamError, ValidationError
from core.models import UNKNOWN, ContractSource

logger = logging.getLogger(__name__)


FILE_MARKER = "// File: {path}"


def _load_bundle(source_code: str) -> Optional[Dict[str, Any]]:
    """Parse a JSON source bundle, handling the double-brace wrapper."""
    json_str = source_code.strip()
    candidates = [json_str]
    # Standard JSON Input is returned as {{ ... }}
    if json_str.startswith('{{') and json_str.endswith('}}'):
        candidates.insert(0, json_str[1:-1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate, object_pairs_hook=OrderedDict)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def flatten_source_bundle(source_code: str) -> Tuple[str, int]:
    """
    Flatten an explorer SourceCode payload into one text stream.

    Multi-file bundles become one ``// File: <path>`` marker plus content per
    file, joined by a blank line, in the bundle's key order.

    Returns:
        (flattened text, number of files)
    """
    if not source_code:
        return "", 0
    if not source_code.lstrip().startswith('{'):
        return source_code, 1

    bundle = _load_bundle(source_code)
    if bundle is None:
        logger.debug("SourceCode looks like JSON but does not parse, scanning it verbatim")
        return source_code, 1

    if isinstance(bundle.get('sources'), dict):
        files = bundle['sources']
    elif 'content' in bundle and isinstance(bundle['content'], str):
        return bundle['content'], 1
    else:
        files = bundle

    parts: List[str] = []
    for path, file_data in files.items():
        if isinstance(file_data, dict):
            content = file_data.get('content', '')
        elif isinstance(file_data, str):
            content = file_data
        else:
            continue
        parts.append(f"{FILE_MARKER.format(path=path)}\n{content}")

    if not parts:
        return source_code, 1
    return "\n\n".join(parts), len(parts)


class EtherscanFetcher:
    """Contract source code fetcher for Etherscan-compatible explorers."""

    # All networks are served by the v2 multichain endpoint via chainid
    SUPPORTED_NETWORKS = {
        'ethereum': {
            'name': 'Ethereum Mainnet',
            'chain_id': 1,
            'explorer_url': 'https://etherscan.io',
        },
        'sepolia': {
            'name': 'Ethereum Sepolia',
            'chain_id': 11155111,
            'explorer_url': 'https://sepolia.etherscan.io',
        },
        'polygon': {
            'name': 'Polygon Mainnet',
            'chain_id': 137,
            'explorer_url': 'https://polygonscan.com',
        },
        'arbitrum': {
            'name': 'Arbitrum One',
            'chain_id': 42161,
            'explorer_url': 'https://arbiscan.io',
        },
        'optimism': {
            'name': 'Optimism',
            'chain_id': 10,
            'explorer_url': 'https://optimistic.etherscan.io',
        },
        'bsc': {
            'name': 'BNB Smart Chain',
            'chain_id': 56,
            'explorer_url': 'https://bscscan.com',
        },
        'base': {
            'name': 'Base',
            'chain_id': 8453,
            'explorer_url': 'https://basescan.org',
        },
    }

    def __init__(self, config_manager: Optional[ConfigManager] = None):
        self.config_manager = config_manager or ConfigManager()
        config = self.config_manager.config
        self.base_url = config.etherscan_base_url
        self.timeout = config.request_timeout
        self.request_delay = config.request_delay
        self.default_network = config.network if config.network in self.SUPPORTED_NETWORKS else 'ethereum'

    def get_supported_networks(self) -> List[str]:
        """Get list of supported network names."""
        return list(self.SUPPORTED_NETWORKS.keys())

    def get_network_info(self, network: str) -> Optional[Dict[str, Any]]:
        return self.SUPPORTED_NETWORKS.get(network)

    def get_contract_explorer_url(self, address: str, network: Optional[str] = None) -> str:
        info = self.SUPPORTED_NETWORKS.get(network or self.default_network, self.SUPPORTED_NETWORKS['ethereum'])
        return f"{info['explorer_url']}/address/{address}#code"

    def fetch_source(self, address: str, network: Optional[str] = None,
                     require_verified: bool = True) -> ContractSource:
        """Fetch and normalize contract source code.

        Args:
            address: Contract address to fetch
            network: Network name (defaults to the configured network)
            require_verified: Raise NotFoundError for unverified contracts
                instead of returning an unverified ContractSource

        Raises:
            ValidationError: malformed address or unknown network
            ConfigError: no Etherscan API key configured
            UpstreamError: explorer unreachable or response unusable
            NotFoundError: no verified source (when require_verified)
        """
        address = validate_address(address)
        api_key = self.config_manager.require_etherscan_key()

        target_network = network or self.default_network
        if not isinstance(target_network, str) or target_network not in self.SUPPORTED_NETWORKS:
            raise ValidationError("Unsupported network", detail=f"Rejected network: {target_network!r}")

        try:
            contract_data = self._request_source(address, target_network, api_key)
        except NotFoundError:
            if require_verified:
                raise
            contract_data = {}
        source_code = contract_data.get('SourceCode') or ''

        if not source_code.strip():
            if require_verified:
                raise NotFoundError(detail=f"No verified source for {address}")
            logger.info("Contract %s on %s is not verified", address, target_network)
            return ContractSource(
                address=address,
                raw_text="",
                is_verified=False,
                compiler_version=contract_data.get('CompilerVersion') or UNKNOWN,
                contract_name=contract_data.get('ContractName') or '',
                network=target_network,
            )

        raw_text, file_count = flatten_source_bundle(source_code)
        logger.info(
            "Fetched %s (%s) on %s: %d file(s), %d characters",
            contract_data.get('ContractName') or 'UnknownContract', address,
            target_network, file_count, len(raw_text),
        )
        return self._build_source(address, target_network, contract_data, raw_text, file_count)

    def _request_source(self, address: str, network: str, api_key: str) -> Dict[str, Any]:
        """Single getsourcecode call; returns the first result record."""
        params = {
            'chainid': self.SUPPORTED_NETWORKS[network]['chain_id'],
            'module': 'contract',
            'action': 'getsourcecode',
            'address': address,
            'apikey': api_key,
        }

        # Rate limiting
        if self.request_delay:
            time.sleep(self.request_delay)

        logger.debug("Requesting source for %s on %s", address, network)
        try:
            response = requests.get(self.base_url, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            raise UpstreamError(detail=f"Network error fetching contract: {e}") from e
        except ValueError as e:
            raise UpstreamError(detail=f"JSON decode error: {e}") from e

        if not isinstance(data, dict):
            raise UpstreamError(detail="Unexpected explorer response shape")

        result = data.get('result')
        if data.get('status') != '1':
            error_msg = str(data.get('message') or 'Unknown error')
            result_msg = result if isinstance(result, str) else ''
            combined = f"{error_msg} {result_msg}".lower()
            if 'not verified' in combined:
                raise NotFoundError(detail=result_msg or error_msg)
            if 'rate limit' in combined:
                raise UpstreamError(detail='Etherscan API rate limit exceeded')
            if 'invalid api key' in combined:
                raise UpstreamError(detail='Invalid Etherscan API key')
            raise UpstreamError(detail=f"API error: {error_msg} {result_msg}".strip())

        if not isinstance(result, list) or not result or not isinstance(result[0], dict):
            raise UpstreamError(detail='No contract data found')
        return result[0]

    def _build_source(self, address: str, network: str, contract_data: Dict[str, Any],
                      raw_text: str, file_count: int) -> ContractSource:
        implementation = (contract_data.get('Implementation') or '').strip()
        if implementation and implementation != '0':
            logger.info("Contract %s is a proxy for %s (not followed)", address, implementation)
        else:
            implementation = None

        try:
            libraries = json.loads(contract_data.get('Library') or '{}')
        except json.JSONDecodeError:
            libraries = {}
        if not isinstance(libraries, dict):
            libraries = {}

        return ContractSource(
            address=address,
            raw_text=raw_text,
            is_verified=True,
            compiler_version=contract_data.get('CompilerVersion') or UNKNOWN,
            proxy=str(contract_data.get('Proxy', '0')) == '1',
            implementation_address=implementation,
            contract_name=contract_data.get('ContractName') or '',
            optimization_used=str(contract_data.get('OptimizationUsed', '0')) == '1',
            optimization_runs=str(contract_data.get('Runs') or ''),
            evm_version=contract_data.get('EVMVersion') or 'default',
            constructor_arguments=contract_data.get('ConstructorArguments') or '',
            libraries=libraries,
            license_type=contract_data.get('LicenseType') or '',
            network=network,
            file_count=file_count,
        )


def to_source_record(source: ContractSource) -> Dict[str, Any]:
    """Wire record returned by the /contract-source endpoint."""
    return {
        'isVerified': source.is_verified,
        'sourceCode': source.raw_text,
        'contractName': source.contract_name,
        'compilerVersion': source.compiler_version,
        'optimization': source.optimization_used,
        'optimizationRuns': source.optimization_runs,
        'evmVersion': source.evm_version,
        'constructorArguments': source.constructor_arguments,
        'libraries': dict(source.libraries),
        'implementation': source.implementation_address,
        'proxy': source.proxy,
    }
