#!/usr/bin/env python3
"""
Contract Auditor: regex-based smart contract vulnerability flagger

Main entry point for the CLI interface.
"""

import argparse
import logging
import sys

from core.config_manager import ConfigManager
from core.exceptions import AuditorError


def setup_logging(verbose: bool, level: str = "INFO"):
    """Setup logging configuration."""
    log_level = logging.DEBUG if verbose else getattr(logging, str(level).upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='contract-auditor',
        description="Contract Auditor: flag suspicious patterns in verified smart contract source code",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  contract-auditor analyze 0xdAC17F958D2ee523a2206206994597C13D831ec7
  contract-auditor analyze https://polygonscan.com/address/0x... --format json
  contract-auditor rules --rule Reentrancy
  contract-auditor serve --port 3000
        """
    )
    parser.add_argument('--verbose', '-v', action='store_true', help='Verbose output and debug logging')
    parser.add_argument('--config', help='Path to the YAML configuration file')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    analyze_parser = subparsers.add_parser('analyze', help='Fetch a contract and scan it for vulnerability patterns')
    analyze_parser.add_argument('address', help='Contract address or explorer URL')
    analyze_parser.add_argument('--network', help='Network to fetch from (ethereum, sepolia, polygon, arbitrum, optimism, bsc, base)')
    analyze_parser.add_argument('--format', choices=['display', 'json'], default='display', help='Output format (default: display)')

    source_parser = subparsers.add_parser('source', help='Fetch and print the flattened verified source code')
    source_parser.add_argument('address', help='Contract address or explorer URL')
    source_parser.add_argument('--network', help='Network to fetch from')
    source_parser.add_argument('--output', '-o', help='Write the source to a file instead of stdout')

    details_parser = subparsers.add_parser('details', help='Show contract metadata')
    details_parser.add_argument('address', help='Contract address or explorer URL')

    rules_parser = subparsers.add_parser('rules', help='List the pattern library')
    rules_parser.add_argument('--rule', help='Show the details of one rule')

    serve_parser = subparsers.add_parser('serve', help='Run the HTTP API')
    serve_parser.add_argument('--host', help='Bind address (default from config)')
    serve_parser.add_argument('--port', type=int, help='Port (default from config)')
    serve_parser.add_argument('--debug', action='store_true', help='Include upstream error details in responses')

    config_parser = subparsers.add_parser('config', help='Manage configuration settings')
    config_parser.add_argument('--set-etherscan-key', help='Set Etherscan API key')
    config_parser.add_argument('--show', action='store_true', help='Show current configuration')

    subparsers.add_parser('version', help='Show version information')
    return parser


def main(argv=None):
    """Main entry point for the Contract Auditor CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    config_manager = ConfigManager(args.config) if args.config else ConfigManager()
    setup_logging(args.verbose, config_manager.config.log_level)

    if args.command == 'serve':
        from api.app import run_server
        try:
            run_server(config_manager, host=args.host, port=args.port, debug=args.debug or None)
        except AuditorError as e:
            print(f"Error: {e.public_message}")
            if args.verbose and e.detail:
                print(e.detail)
            return 1
        return 0

    from cli.main import AuditorCLI

    try:
        cli = AuditorCLI(config_manager=config_manager, verbose=args.verbose)

        if args.command == 'analyze':
            return cli.run_analyze(args.address, network=args.network, fmt=args.format)
        elif args.command == 'source':
            return cli.run_source(args.address, network=args.network, output=args.output)
        elif args.command == 'details':
            return cli.run_details(args.address)
        elif args.command == 'rules':
            return cli.show_rules(args.rule)
        elif args.command == 'config':
            return cli.run_config(show=args.show, etherscan_key=args.set_etherscan_key)
        elif args.command == 'version':
            cli.show_version()
            return 0

    except KeyboardInterrupt:
        print("\nOperation cancelled by user.")
        return 1
    except AuditorError as e:
        print(f"Error: {e.public_message}")
        if args.verbose and e.detail:
            print(e.detail)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
