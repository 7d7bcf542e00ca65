#!/usr/bin/env python3
"""
Configuration Manager for the Contract Auditor

Loads settings from a YAML file and the environment. The environment always
wins so deployments can inject the explorer API key without a config file.
"""

import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from rich.console import Console

from core.exceptions import ConfigError


DEFAULT_CONFIG_FILE = "~/.contract-auditor/config.yaml"


@dataclass
class AuditorConfig:
    """Main configuration for the Contract Auditor."""

    # Etherscan API settings
    etherscan_api_key: str = ""
    etherscan_base_url: str = "https://api.etherscan.io/v2/api"
    network: str = "ethereum"
    request_timeout: int = 30
    request_delay: float = 0.0  # Rate limiting pause before each explorer call

    # HTTP server settings
    host: str = "127.0.0.1"
    port: int = 3000
    debug: bool = False
    cors_origins: str = "*"

    # Logging
    log_level: str = "INFO"

    # Optional YAML file with extra pattern rules
    rules_file: str = ""


# Environment variable -> (config field, converter)
ENV_OVERRIDES = {
    'ETHERSCAN_API_KEY': ('etherscan_api_key', str),
    'ETHERSCAN_API_URL': ('etherscan_base_url', str),
    'AUDITOR_NETWORK': ('network', str),
    'AUDITOR_RULES_FILE': ('rules_file', str),
    'HOST': ('host', str),
    'PORT': ('port', int),
    'AUDITOR_DEBUG': ('debug', lambda v: v.strip().lower() in ('1', 'true', 'yes', 'on')),
    'AUDITOR_LOG_LEVEL': ('log_level', lambda v: v.strip().upper()),
}


class ConfigManager:
    """Manages Contract Auditor configuration."""

    def __init__(self, config_file: str = DEFAULT_CONFIG_FILE, use_env: bool = True):
        self.config_file = Path(config_file).expanduser()
        self.console = Console(stderr=True)
        self.config = AuditorConfig()

        self.load_config()
        if use_env:
            self.apply_env_overrides()

    def load_config(self) -> None:
        """Load configuration from file."""
        if not self.config_file.exists():
            return

        try:
            with open(self.config_file, 'r') as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            self.console.print(f"[yellow]Warning: Could not load config file: {e}[/yellow]")
            return

        if not isinstance(data, dict):
            return

        known = {f.name for f in fields(AuditorConfig)}
        for key, value in data.items():
            if key in known and value is not None:
                setattr(self.config, key, value)

    def apply_env_overrides(self, environ: Optional[Dict[str, str]] = None) -> None:
        """Apply environment variables on top of the file configuration."""
        environ = os.environ if environ is None else environ
        for var, (attr, convert) in ENV_OVERRIDES.items():
            raw = environ.get(var)
            if raw is None or raw == '':
                continue
            try:
                setattr(self.config, attr, convert(raw))
            except ValueError:
                self.console.print(f"[yellow]Warning: Ignoring invalid value for {var}: {raw!r}[/yellow]")

    def save_config(self) -> None:
        """Save current configuration to file."""
        self.config_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_file, 'w') as f:
            yaml.dump(asdict(self.config), f, default_flow_style=False, indent=2)
        self.console.print(f"[green]✓ Configuration saved to {self.config_file}[/green]")

    def set_etherscan_key(self, api_key: str) -> None:
        """Set Etherscan API key for contract fetching."""
        self.config.etherscan_api_key = api_key
        self.save_config()
        self.console.print("[green]✓ Etherscan API key configured[/green]")

    def require_etherscan_key(self) -> str:
        """Return the Etherscan API key or raise ConfigError."""
        api_key = (self.config.etherscan_api_key or '').strip()
        if not api_key:
            raise ConfigError(
                detail="Etherscan API key not configured. Set ETHERSCAN_API_KEY or run 'contract-auditor config --set-etherscan-key'."
            )
        return api_key

    def as_dict(self, mask_secrets: bool = True) -> Dict[str, Any]:
        data = asdict(self.config)
        if mask_secrets and data.get('etherscan_api_key'):
            key = data['etherscan_api_key']
            data['etherscan_api_key'] = (key[:4] + '…') if len(key) > 4 else '****'
        return data

    def show_config(self) -> None:
        """Display current configuration."""
        from rich.table import Table

        table = Table(title="⚙️ Contract Auditor Configuration")
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="green")

        for key, value in self.as_dict().items():
            if key == 'etherscan_api_key' and not value:
                value = "[red]not set[/red]"
            table.add_row(key, str(value))

        self.console.print(table)
        self.console.print(f"\n[bold cyan]Config File:[/bold cyan] {self.config_file}")
