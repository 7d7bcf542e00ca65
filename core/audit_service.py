"""
Contract audit orchestration: fetch -> detect, the single entry point used by
the HTTP routes and the CLI.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from core.address import validate_address
from core.etherscan_fetcher import EtherscanFetcher
from core.exceptions import NotFoundError
from core.models import UNKNOWN, ContractSource, Finding
from core.vulnerability_detector import VulnerabilityDetector

logger = logging.getLogger(__name__)


@dataclass
class AnalysisReport:
    """Result of analyzing one contract address."""
    address: Optional[str]
    findings: List[Finding] = field(default_factory=list)
    is_verified: bool = True
    contract_name: str = ""
    compiler_version: str = UNKNOWN
    proxy: bool = False
    implementation_address: Optional[str] = None
    network: str = "ethereum"

    @classmethod
    def from_source(cls, source: ContractSource, findings: List[Finding]) -> "AnalysisReport":
        return cls(
            address=source.address,
            findings=findings,
            is_verified=source.is_verified,
            contract_name=source.contract_name,
            compiler_version=source.compiler_version,
            proxy=source.proxy,
            implementation_address=source.implementation_address,
            network=source.network,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': True,
            'address': self.address,
            'network': self.network,
            'isVerified': self.is_verified,
            'contractName': self.contract_name,
            'compilerVersion': self.compiler_version,
            'proxy': self.proxy,
            'implementation': self.implementation_address,
            'summary': VulnerabilityDetector.summarize(self.findings),
            'vulnerabilities': [finding.to_dict() for finding in self.findings],
        }


class ContractAuditor:
    """Fetches a contract's source and runs the detector over it."""

    def __init__(self, fetcher: Optional[EtherscanFetcher] = None,
                 detector: Optional[VulnerabilityDetector] = None):
        self.fetcher = fetcher or EtherscanFetcher()
        self.detector = detector or VulnerabilityDetector()

    def analyze(self, address: str, network: Optional[str] = None) -> AnalysisReport:
        """Analyze a deployed contract.

        Unverified contracts are a normal outcome and produce an empty,
        unverified report. ValidationError is raised before any fetch;
        ConfigError and UpstreamError propagate.
        """
        address = validate_address(address)
        try:
            source = self.fetcher.fetch_source(address, network=network)
        except NotFoundError as e:
            logger.info("No verified source for %s: %s", address, e.detail or e.public_message)
            return AnalysisReport(
                address=address,
                is_verified=False,
                network=network or self.fetcher.default_network,
            )

        findings = self.detector.detect(source)
        return AnalysisReport.from_source(source, findings)

    def analyze_source(self, raw_text: str, address: Optional[str] = None) -> AnalysisReport:
        """Scan supplied source text without any network call."""
        if address is not None:
            address = validate_address(address)
        findings = self.detector.scan_text(raw_text or '')
        return AnalysisReport(address=address, findings=findings, is_verified=bool(raw_text))
