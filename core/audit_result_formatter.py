#!/usr/bin/env python3
"""
Audit Result Formatter

Formats findings for terminal display, JSON responses, result cards and the
per-rule details view. Every finding is rendered exactly once, in detector
order.
"""

from typing import Any, Dict, List, Optional, Sequence

from rich.table import Table

from core.models import Finding, PatternRule, Severity
from core.vulnerability_detector import VulnerabilityDetector


SEVERITY_STYLES = {
    Severity.HIGH: "bold red",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "cyan",
}


class AuditResultFormatter:
    def format_for_display(self, address: Optional[str], findings: Sequence[Finding]) -> str:
        """Numbered plain-text listing."""
        if not findings:
            return "No vulnerabilities detected"

        lines: List[str] = []
        if address:
            lines.append(f"Contract: {address}")
        for num, f in enumerate(findings, 1):
            lines.append(f"[{num}] {f.severity.value.upper()}: {f.rule_id}")
            lines.append(f"    {f.description}")
            lines.append(f"    Impact: {f.impact}")
            lines.append(f"    Recommendation: {f.recommendation}")
        return "\n".join(lines)

    def format_for_json(self, address: Optional[str], findings: Sequence[Finding],
                        is_verified: bool = True) -> Dict[str, Any]:
        return {
            'address': address,
            'isVerified': is_verified,
            'summary': VulnerabilityDetector.summarize(findings),
            'vulnerabilities': [f.to_dict() for f in findings],
        }

    def format_cards(self, findings: Sequence[Finding]) -> List[Dict[str, str]]:
        """One result card per finding."""
        return [
            {
                'title': f.rule_id,
                'severity': f.severity.value,
                'severityLabel': f"Severity: {f.severity.label}",
                'description': f.description,
                'impact': f.impact,
                'recommendation': f.recommendation,
                'cssClass': f"vulnerability-card {f.severity.value}",
            }
            for f in findings
        ]

    def format_details(self, rule: PatternRule) -> Dict[str, Any]:
        """Details view for a single rule."""
        return {
            'title': rule.id,
            'severity': rule.severity.value,
            'description': rule.description,
            'impact': rule.impact,
            'recommendation': rule.recommendation,
            'technicalDetails': rule.technical_details,
            'codeExample': rule.code_example,
            'references': [{'title': title, 'url': url} for title, url in rule.references],
        }

    def render_table(self, address: Optional[str], findings: Sequence[Finding]) -> Table:
        title = f"Findings for {address}" if address else "Findings"
        table = Table(title=title, show_lines=True)
        table.add_column("#", style="dim", justify="right")
        table.add_column("Vulnerability", style="bold")
        table.add_column("Severity")
        table.add_column("Description")
        table.add_column("Recommendation", style="green")

        for num, f in enumerate(findings, 1):
            style = SEVERITY_STYLES.get(f.severity, "white")
            table.add_row(
                str(num),
                f.rule_id,
                f"[{style}]{f.severity.label}[/{style}]",
                f.description,
                f.recommendation,
            )
        return table
