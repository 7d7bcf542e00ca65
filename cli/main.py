"""
Main CLI implementation for the Contract Auditor.
"""

import json
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.address import parse_explorer_url
from core.audit_result_formatter import SEVERITY_STYLES, AuditResultFormatter
from core.audit_service import ContractAuditor
from core.config_manager import ConfigManager
from core.contract_details import ContractDetailsService
from core.etherscan_fetcher import EtherscanFetcher
from core.exceptions import AuditorError, ValidationError
from core.pattern_library import PatternLibrary, get_pattern_library
from core.vulnerability_detector import VulnerabilityDetector


class AuditorCLI:
    """Main CLI class for the Contract Auditor."""

    def __init__(self, config_manager: Optional[ConfigManager] = None,
                 console: Optional[Console] = None, verbose: bool = False):
        self.version = "1.0.0"
        self.console = console or Console()
        self.verbose = verbose
        self.config_manager = config_manager or ConfigManager()
        self.etherscan_fetcher = EtherscanFetcher(self.config_manager)
        self.pattern_library = self._load_pattern_library()
        self.auditor = ContractAuditor(
            fetcher=self.etherscan_fetcher,
            detector=VulnerabilityDetector(self.pattern_library),
        )
        self.formatter = AuditResultFormatter()

    def _load_pattern_library(self) -> PatternLibrary:
        rules_file = self.config_manager.config.rules_file
        if rules_file:
            return PatternLibrary.from_yaml(rules_file)
        return get_pattern_library()

    def show_version(self):
        """Display version information."""
        self.console.print(f"Contract Auditor v{self.version}")

    def report_error(self, error: AuditorError) -> int:
        self.console.print(f"[red]❌ {error.public_message}[/red]")
        if self.verbose and error.detail:
            self.console.print(f"[dim]{error.detail}[/dim]")
        return 1

    def _resolve_target(self, target: str, network: Optional[str]):
        """Accept a bare address or an explorer URL."""
        parsed_network, address = parse_explorer_url(target)
        if address is None:
            raise ValidationError("Invalid contract address format", detail=f"Could not parse {target!r}")
        if network is None and parsed_network != 'ethereum':
            network = parsed_network
        return address, network

    def run_analyze(self, target: str, network: Optional[str] = None, fmt: str = 'display') -> int:
        try:
            address, network = self._resolve_target(target, network)
            report = self.auditor.analyze(address, network=network)
        except AuditorError as e:
            return self.report_error(e)

        if fmt == 'json':
            self.console.print_json(json.dumps(report.to_dict()))
            return 0

        if not report.is_verified:
            self.console.print(f"[yellow]⚠️ Contract {address} has no verified source code, nothing to scan[/yellow]")
            return 0

        name = report.contract_name or 'UnknownContract'
        self.console.print(f"[green]✅ Analyzed {name} ({address}) compiled with {report.compiler_version}[/green]")
        if report.proxy and report.implementation_address:
            self.console.print(f"[blue]🔗 Proxy for implementation {report.implementation_address} (not analyzed)[/blue]")

        if not report.findings:
            self.console.print("[green]No vulnerabilities detected[/green]")
            return 0

        self.console.print(self.formatter.render_table(address, report.findings))
        summary = VulnerabilityDetector.summarize(report.findings)
        self.console.print(
            f"Total: {summary['total']}  High: {summary['high']}  "
            f"Medium: {summary['medium']}  Low: {summary['low']}"
        )
        return 0

    def run_source(self, target: str, network: Optional[str] = None, output: Optional[str] = None) -> int:
        try:
            address, network = self._resolve_target(target, network)
            source = self.etherscan_fetcher.fetch_source(address, network=network)
        except AuditorError as e:
            return self.report_error(e)

        if output:
            Path(output).write_text(source.raw_text, encoding='utf-8')
            self.console.print(f"[green]✅ Saved {source.file_count} file(s) to {output}[/green]")
        else:
            self.console.print(source.raw_text, markup=False, highlight=False)
        return 0

    def run_details(self, target: str) -> int:
        service = ContractDetailsService(self.etherscan_fetcher)
        try:
            address, _ = self._resolve_target(target, None)
            details = service.get_details(address)
        except AuditorError as e:
            return self.report_error(e)

        table = Table(title=f"Contract {address}")
        table.add_column("Field", style="cyan")
        table.add_column("Value", style="green")
        for key, value in details.items():
            table.add_row(key, str(value))
        self.console.print(table)
        return 0

    def show_rules(self, rule_id: Optional[str] = None) -> int:
        if rule_id:
            rule = self.pattern_library.get_rule(rule_id)
            if rule is None:
                self.console.print(f"[red]❌ Unknown rule: {rule_id}[/red]")
                return 1
            details = self.formatter.format_details(rule)
            body = [
                f"[bold]Severity:[/bold] {rule.severity.label}",
                f"[bold]Description:[/bold] {details['description']}",
                f"[bold]Impact:[/bold] {details['impact']}",
                f"[bold]Recommendation:[/bold] {details['recommendation']}",
                f"[bold]Technical details:[/bold] {details['technicalDetails']}",
            ]
            self.console.print(Panel("\n".join(body), title=rule.id))
            if details['codeExample']:
                self.console.print(Panel(Text(details["codeExample"]), title="Code example"))
            for ref in details['references']:
                self.console.print(f"  • {ref['title']}: {ref['url']}")
            return 0

        table = Table(title="📋 Pattern Library")
        table.add_column("Rule", style="bold")
        table.add_column("Severity")
        table.add_column("Description")
        for rule in self.pattern_library:
            style = SEVERITY_STYLES.get(rule.severity, "white")
            table.add_row(rule.id, f"[{style}]{rule.severity.label}[/{style}]", rule.description)
        self.console.print(table)
        return 0

    def run_config(self, show: bool = False, etherscan_key: Optional[str] = None) -> int:
        if etherscan_key:
            self.config_manager.set_etherscan_key(etherscan_key)
        if show or not etherscan_key:
            self.config_manager.show_config()
        return 0
