"""
Vulnerability Detector

Runs every rule of the pattern library against a contract's source text and
reports one Finding per matching rule, in library order.
"""

import logging
from typing import Dict, List, Optional, Sequence

from core.models import ContractSource, Finding, Severity
from core.pattern_library import PatternLibrary, get_pattern_library

logger = logging.getLogger(__name__)


class VulnerabilityDetector:
    """Applies PatternLibrary rules to raw source text."""

    def __init__(self, pattern_library: Optional[PatternLibrary] = None):
        self.pattern_library = pattern_library or get_pattern_library()

    def detect(self, source: ContractSource) -> List[Finding]:
        """Scan a fetched contract. Unverified contracts yield no findings."""
        if not source.is_verified:
            logger.debug("Skipping scan of unverified contract %s", source.address)
            return []
        findings = self.scan_text(source.raw_text)
        logger.info("Scanned %s: %d finding(s)", source.address, len(findings))
        return findings

    def scan_text(self, text: str) -> List[Finding]:
        """Presence scan: each rule contributes at most one Finding."""
        findings: List[Finding] = []
        if not text:
            return findings

        for rule in self.pattern_library.all_rules():
            try:
                matched = rule.matches(text)
            except Exception as e:
                # A faulty rule counts as a non-match, the rest of the scan continues
                logger.warning("Rule %r failed during evaluation: %s", rule.id, e)
                continue
            if matched:
                findings.append(Finding.from_rule(rule))
        return findings

    @staticmethod
    def summarize(findings: Sequence[Finding]) -> Dict[str, int]:
        """Counts per severity plus total."""
        summary = {severity.value: 0 for severity in Severity}
        for finding in findings:
            summary[finding.severity.value] += 1
        summary['total'] = len(findings)
        return summary
