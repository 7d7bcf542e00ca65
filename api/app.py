#!/usr/bin/env python3
"""
HTTP API for the Contract Auditor.

Thin Flask adapters over ContractAuditor, ContractDetailsService and
EtherscanFetcher. Error bodies are generic; upstream details are only
included when the app runs in debug mode.
"""

import logging
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from core.audit_service import ContractAuditor
from core.config_manager import ConfigManager
from core.contract_details import ContractDetailsService
from core.etherscan_fetcher import EtherscanFetcher, to_source_record
from core.exceptions import AuditorError, ConfigError, UpstreamError, ValidationError
from core.pattern_library import PatternLibrary
from core.vulnerability_detector import VulnerabilityDetector

logger = logging.getLogger(__name__)


ENDPOINTS = {
    'test': '/test',
    'analyze': '/analyze',
    'contractDetails': '/contract-details',
    'contractSource': '/contract-source',
}


def _json_body() -> Dict[str, Any]:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def _require_address(body: Dict[str, Any]) -> str:
    address = body.get('address')
    if not address:
        raise ValidationError("Contract address is required")
    return address


def build_auditor(config_manager: ConfigManager) -> ContractAuditor:
    """Wire fetcher and detector from configuration."""
    fetcher = EtherscanFetcher(config_manager)
    library = None
    if config_manager.config.rules_file:
        library = PatternLibrary.from_yaml(config_manager.config.rules_file)
    return ContractAuditor(fetcher=fetcher, detector=VulnerabilityDetector(library))


def create_app(config_manager: Optional[ConfigManager] = None,
               auditor: Optional[ContractAuditor] = None,
               details_service: Optional[ContractDetailsService] = None) -> Flask:
    config_manager = config_manager or ConfigManager()
    config = config_manager.config
    auditor = auditor or build_auditor(config_manager)
    details_service = details_service or ContractDetailsService(auditor.fetcher)

    app = Flask(__name__)
    app.config['DEBUG_ERRORS'] = bool(config.debug)
    CORS(
        app,
        origins=config.cors_origins,
        methods=['GET', 'POST', 'OPTIONS'],
        allow_headers=['Content-Type'],
    )

    @app.before_request
    def log_request():
        logger.info("%s %s", request.method, request.path)

    @app.errorhandler(AuditorError)
    def handle_auditor_error(error: AuditorError):
        if isinstance(error, ValidationError):
            logger.warning("Rejected request: %s", error.detail or error.public_message)
        elif isinstance(error, (ConfigError, UpstreamError)):
            logger.error("%s: %s", type(error).__name__, error.detail or error.public_message)
        else:
            logger.warning("%s: %s", type(error).__name__, error.detail or error.public_message)
        return jsonify(error.to_dict(include_detail=app.config['DEBUG_ERRORS'])), error.status_code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        if isinstance(error, HTTPException):
            return jsonify({'success': False, 'error': error.description}), error.code
        logger.exception("Unhandled error")
        return jsonify({'success': False, 'error': 'Internal server error'}), 500

    @app.get('/')
    def index():
        return jsonify({
            'status': 'online',
            'message': 'Server is running',
            'endpoints': ENDPOINTS,
        })

    @app.get('/test')
    def test():
        return jsonify({'message': 'Server is running'})

    @app.post('/analyze')
    def analyze():
        body = _json_body()
        if not body.get('address') and body.get('sourceCode'):
            report = auditor.analyze_source(str(body['sourceCode']))
        else:
            report = auditor.analyze(_require_address(body), network=body.get('network'))
        return jsonify(report.to_dict())

    @app.post('/contract-details')
    def contract_details():
        body = _json_body()
        return jsonify(details_service.get_details(_require_address(body)))

    @app.post('/contract-source')
    def contract_source():
        body = _json_body()
        source = auditor.fetcher.fetch_source(
            _require_address(body),
            network=body.get('network'),
            require_verified=False,
        )
        return jsonify(to_source_record(source))

    return app


def run_server(config_manager: Optional[ConfigManager] = None,
               host: Optional[str] = None, port: Optional[int] = None,
               debug: Optional[bool] = None) -> None:
    config_manager = config_manager or ConfigManager()
    config = config_manager.config
    if debug is not None:
        config.debug = debug
    app = create_app(config_manager)
    host = host or config.host
    port = port or config.port
    logger.info("Server running at http://%s:%s", host, port)
    app.run(host=host, port=port, debug=bool(config.debug), use_reloader=False)
