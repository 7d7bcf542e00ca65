"""
Tests for the Flask HTTP API.
"""

from unittest.mock import MagicMock, patch

import pytest

from api.app import create_app
from conftest import (
    ETHERSCAN_RATE_LIMIT_RESPONSE,
    ETHERSCAN_UNVERIFIED_RESPONSE,
    INVALID_ADDRESS_SHORT,
    SAMPLE_REENTRANT_SOLIDITY,
    TETHER_ADDRESS,
    VALID_ADDRESS,
    etherscan_response,
    mock_http_response,
)
from core.contract_details import UNKNOWN_CONTRACT


@pytest.fixture
def client(config_manager):
    app = create_app(config_manager)
    app.testing = True
    return app.test_client()


@pytest.fixture
def debug_client(config_manager):
    config_manager.config.debug = True
    app = create_app(config_manager)
    return app.test_client()


class TestStatusRoutes:

    def test_index(self, client):
        resp = client.get('/')
        assert resp.status_code == 200
        body = resp.get_json()
        assert body['status'] == 'online'
        assert body['endpoints']['analyze'] == '/analyze'

    def test_health(self, client):
        resp = client.get('/test')
        assert resp.status_code == 200
        assert resp.get_json() == {'message': 'Server is running'}

    def test_cors_preflight(self, client):
        resp = client.options('/analyze', headers={
            'Origin': 'http://localhost:5173',
            'Access-Control-Request-Method': 'POST',
            'Access-Control-Request-Headers': 'Content-Type',
        })
        assert resp.status_code == 200
        assert resp.headers.get('Access-Control-Allow-Origin') in ('*', 'http://localhost:5173')
        assert 'POST' in resp.headers.get('Access-Control-Allow-Methods', '')

    def test_unknown_route(self, client):
        resp = client.get('/nope')
        assert resp.status_code == 404
        assert resp.get_json()['success'] is False


class TestAnalyzeRoute:

    @patch('core.etherscan_fetcher.requests.get')
    def test_analyze(self, mock_get, client):
        mock_get.return_value = mock_http_response(etherscan_response())

        resp = client.post('/analyze', json={'address': VALID_ADDRESS})

        assert resp.status_code == 200
        body = resp.get_json()
        assert body['success'] is True
        assert body['isVerified'] is True
        assert 'Reentrancy' in [v['name'] for v in body['vulnerabilities']]

    @patch('core.etherscan_fetcher.requests.get')
    def test_missing_address(self, mock_get, client):
        resp = client.post('/analyze', json={})
        assert resp.status_code == 400
        assert resp.get_json() == {'success': False, 'error': 'Contract address is required'}
        mock_get.assert_not_called()

    @patch('core.etherscan_fetcher.requests.get')
    def test_invalid_address(self, mock_get, client):
        resp = client.post('/analyze', json={'address': INVALID_ADDRESS_SHORT})
        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'Invalid contract address format'
        mock_get.assert_not_called()

    @pytest.mark.parametrize("network", [["x"], {"name": "polygon"}, 137, "solana"])
    @patch('core.etherscan_fetcher.requests.get')
    def test_bad_network(self, mock_get, client, network):
        resp = client.post('/analyze', json={'address': VALID_ADDRESS, 'network': network})
        assert resp.status_code == 400
        assert resp.get_json() == {'success': False, 'error': 'Unsupported network'}
        mock_get.assert_not_called()

    @patch('core.etherscan_fetcher.requests.get')
    def test_source_bad_network(self, mock_get, client):
        resp = client.post('/contract-source', json={'address': VALID_ADDRESS, 'network': ['x']})
        assert resp.status_code == 400
        mock_get.assert_not_called()

    def test_non_json_body(self, client):
        resp = client.post('/analyze', data='address=0x', content_type='text/plain')
        assert resp.status_code == 400
        assert resp.get_json()['success'] is False

    @patch('core.etherscan_fetcher.requests.get')
    def test_unverified_is_not_an_error(self, mock_get, client):
        mock_get.return_value = mock_http_response(ETHERSCAN_UNVERIFIED_RESPONSE)

        resp = client.post('/analyze', json={'address': VALID_ADDRESS})

        assert resp.status_code == 200
        body = resp.get_json()
        assert body['isVerified'] is False
        assert body['vulnerabilities'] == []

    @patch('core.etherscan_fetcher.requests.get')
    def test_upstream_failure_hides_details(self, mock_get, client):
        mock_get.return_value = mock_http_response(ETHERSCAN_RATE_LIMIT_RESPONSE)

        resp = client.post('/analyze', json={'address': VALID_ADDRESS})

        assert resp.status_code == 500
        assert resp.get_json() == {'success': False, 'error': 'Error fetching contract data'}

    @patch('core.etherscan_fetcher.requests.get')
    def test_upstream_failure_details_in_debug(self, mock_get, debug_client):
        mock_get.return_value = mock_http_response(ETHERSCAN_RATE_LIMIT_RESPONSE)

        resp = debug_client.post('/analyze', json={'address': VALID_ADDRESS})

        assert resp.status_code == 500
        assert 'rate limit' in resp.get_json()['details']

    @patch('core.etherscan_fetcher.requests.get')
    def test_missing_api_key(self, mock_get, keyless_config_manager):
        client = create_app(keyless_config_manager).test_client()

        resp = client.post('/analyze', json={'address': VALID_ADDRESS})

        assert resp.status_code == 500
        assert resp.get_json()['error'] == 'Server configuration error'
        mock_get.assert_not_called()

    @patch('core.etherscan_fetcher.requests.get')
    def test_analyze_supplied_source(self, mock_get, client):
        resp = client.post('/analyze', json={'sourceCode': SAMPLE_REENTRANT_SOLIDITY})

        assert resp.status_code == 200
        assert 'Reentrancy' in [v['name'] for v in resp.get_json()['vulnerabilities']]
        mock_get.assert_not_called()

    def test_unexpected_error_is_generic(self, config_manager):
        auditor = MagicMock()
        auditor.analyze.side_effect = RuntimeError("secret stack detail")
        client = create_app(config_manager, auditor=auditor, details_service=MagicMock()).test_client()

        resp = client.post('/analyze', json={'address': VALID_ADDRESS})

        assert resp.status_code == 500
        assert resp.get_json() == {'success': False, 'error': 'Internal server error'}


class TestContractRoutes:

    def test_details_known_contract(self, client):
        resp = client.post('/contract-details', json={'address': TETHER_ADDRESS})
        assert resp.status_code == 200
        assert resp.get_json()['name'] == 'Tether USD'

    @patch('core.etherscan_fetcher.requests.get')
    def test_details_unknown_contract_falls_back(self, mock_get, client):
        mock_get.return_value = mock_http_response(ETHERSCAN_UNVERIFIED_RESPONSE)
        resp = client.post('/contract-details', json={'address': VALID_ADDRESS})
        assert resp.status_code == 200
        assert resp.get_json() == UNKNOWN_CONTRACT

    def test_details_missing_address(self, client):
        resp = client.post('/contract-details', json={})
        assert resp.status_code == 400

    @patch('core.etherscan_fetcher.requests.get')
    def test_source(self, mock_get, client):
        mock_get.return_value = mock_http_response(etherscan_response())

        resp = client.post('/contract-source', json={'address': VALID_ADDRESS})

        assert resp.status_code == 200
        body = resp.get_json()
        assert body['isVerified'] is True
        assert body['sourceCode'] == SAMPLE_REENTRANT_SOLIDITY
        assert body['contractName'] == 'EtherStore'

    @patch('core.etherscan_fetcher.requests.get')
    def test_source_unverified(self, mock_get, client):
        mock_get.return_value = mock_http_response(ETHERSCAN_UNVERIFIED_RESPONSE)

        resp = client.post('/contract-source', json={'address': VALID_ADDRESS})

        assert resp.status_code == 200
        body = resp.get_json()
        assert body['isVerified'] is False
        assert body['sourceCode'] == ''

    def test_source_invalid_address(self, client):
        resp = client.post('/contract-source', json={'address': INVALID_ADDRESS_SHORT})
        assert resp.status_code == 400
