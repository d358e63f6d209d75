#!/usr/bin/env python3
"""Band Price Relayer.

Fetches asset prices from the Band oracle, normalizes them into a fixed
schema and relays them to an on-chain reference contract every few seconds.

Run with ``python -m relayer.main`` or the ``band-relayer`` console script.
"""

import argparse
import asyncio
import logging
import os
import sys

from .src.ContractUtility import NETWORKS, ContractUtility
from .src.KeyStore import DEFAULT_CREDENTIALS_PATH, FileKeyStore
from .src.LedgerClient import Web3LedgerClient
from .src.OracleClient import OracleClient
from .src.RelayConfig import DEFAULT_SYMBOLS, RelayConfig
from .src.RelayLoop import RelayLoop

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def parse_symbols(symbols_str: str) -> list[str]:
    """Parse a comma-separated symbol list, keeping request order.

    Symbols are upper-cased and duplicates dropped.

    :param symbols_str: Symbols like "btc,eth".
    :returns: List of symbols, e.g. ["BTC", "ETH"].
    """
    symbols: list[str] = []
    for item in symbols_str.split(","):
        symbol = item.strip().upper()
        if symbol and symbol not in symbols:
            symbols.append(symbol)
    return symbols


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser; defaults come from the environment."""
    parser = argparse.ArgumentParser(
        description="Band Price Relayer: relay oracle prices to a reference contract",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Networks:
  {', '.join(NETWORKS)} (or any RPC URL)

Examples:
  # Relay BTC and ETH to a testnet contract every 10 seconds
  python -m relayer.main --sender 0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266 \\
      --contract 0x5FbDB2315678afecb367f032d93F642f64180aa3

  # More symbols, backing off up to 5 minutes on repeated failures
  python -m relayer.main --symbols btc,eth,rose --interval 30 \\
      --max-backoff 300 --schema-cooldown 120

Environment variables (CLI args take precedence):
  SENDER, CONTRACT_ADDRESS, METHOD_NAME, NETWORK, RPC_URL, CREDENTIALS_PATH,
  KEYSTORE_PASSWORD, SYMBOLS, ORACLE_ENDPOINT, MIN_COUNT, ASK_COUNT, INTERVAL,
  GAS_LIMIT, ATTACHED_VALUE, FETCH_TIMEOUT, SUBMIT_TIMEOUT, MAX_BACKOFF,
  SCHEMA_COOLDOWN
""",
    )

    parser.add_argument(
        "--sender",
        type=str,
        help="Account identifier of the signing key in the credential store",
        default=os.environ.get("SENDER"),
    )

    parser.add_argument(
        "--contract",
        dest="contract_id",
        type=str,
        help="Address of the relay contract",
        default=os.environ.get("CONTRACT_ADDRESS"),
    )

    parser.add_argument(
        "--method",
        dest="method_name",
        type=str,
        help="Contract method receiving the batch (default: relay)",
        default=os.environ.get("METHOD_NAME") or "relay",
    )

    parser.add_argument(
        "--network",
        type=str,
        help="Network to connect to (sapphire, sapphire-testnet, sapphire-localnet)",
        default=os.environ.get("NETWORK") or "sapphire-testnet",
    )

    parser.add_argument(
        "--rpc-url",
        dest="rpc_url",
        type=str,
        help="RPC URL overriding the network default",
        default=os.environ.get("RPC_URL"),
    )

    parser.add_argument(
        "--credentials-path",
        dest="credentials_path",
        type=str,
        help=f"Credential store directory (default: {DEFAULT_CREDENTIALS_PATH})",
        default=os.environ.get("CREDENTIALS_PATH") or DEFAULT_CREDENTIALS_PATH,
    )

    parser.add_argument(
        "--symbols",
        type=str,
        help="Comma-separated symbols to relay (default: BTC,ETH)",
        default=os.environ.get("SYMBOLS") or ",".join(DEFAULT_SYMBOLS),
    )

    parser.add_argument(
        "--oracle-endpoint",
        dest="oracle_endpoint",
        type=str,
        help="Oracle request_prices URL",
        default=os.environ.get("ORACLE_ENDPOINT") or OracleClient.DEFAULT_ENDPOINT,
    )

    parser.add_argument(
        "--min-count",
        dest="min_count",
        type=int,
        help="Minimum oracle sources that must respond (default: 3)",
        default=int(os.environ.get("MIN_COUNT") or "3"),
    )

    parser.add_argument(
        "--ask-count",
        dest="ask_count",
        type=int,
        help="Oracle sources queried per symbol (default: 4)",
        default=int(os.environ.get("ASK_COUNT") or "4"),
    )

    parser.add_argument(
        "--interval",
        type=int,
        help="Seconds between relay cycles (minimum: 1, default: 10)",
        default=int(os.environ.get("INTERVAL") or "10"),
    )

    parser.add_argument(
        "--gas-limit",
        dest="compute_budget",
        type=int,
        help="Gas limit of each relay transaction (default: 500000)",
        default=int(os.environ.get("GAS_LIMIT") or "500000"),
    )

    parser.add_argument(
        "--attached-value",
        dest="attached_value",
        type=int,
        help="Value sent with each relay call in wei (default: 0)",
        default=int(os.environ.get("ATTACHED_VALUE") or "0"),
    )

    parser.add_argument(
        "--fetch-timeout",
        dest="fetch_timeout",
        type=float,
        help="Timeout for the oracle request in seconds (default: 10.0)",
        default=float(os.environ.get("FETCH_TIMEOUT") or "10.0"),
    )

    parser.add_argument(
        "--submit-timeout",
        dest="submit_timeout",
        type=float,
        help="Timeout for RPC requests and the receipt wait in seconds (default: 60.0)",
        default=float(os.environ.get("SUBMIT_TIMEOUT") or "60.0"),
    )

    parser.add_argument(
        "--max-backoff",
        dest="max_backoff",
        type=float,
        help="Max delay after consecutive transient failures (default: interval, no backoff)",
        default=os.environ.get("MAX_BACKOFF") or None,
    )

    parser.add_argument(
        "--schema-cooldown",
        dest="schema_cooldown",
        type=float,
        help="Min delay after schema errors or reverted transactions (default: interval)",
        default=os.environ.get("SCHEMA_COOLDOWN") or None,
    )

    parser.add_argument(
        "--no-countdown",
        dest="countdown",
        action="store_false",
        help="Do not print a countdown between cycles",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    return parser


def build_config(
    parser: argparse.ArgumentParser, args: argparse.Namespace
) -> RelayConfig:
    """Validate parsed arguments and freeze them into a RelayConfig.

    Exits through ``parser.error`` on invalid values.
    """
    if not args.sender:
        parser.error("--sender (or SENDER) is required")

    if not args.contract_id:
        parser.error("--contract (or CONTRACT_ADDRESS) is required")

    symbols = parse_symbols(args.symbols)
    if not symbols:
        parser.error("At least one symbol must be specified")

    try:
        return RelayConfig(
            sender=args.sender,
            contract_id=args.contract_id,
            network=args.network,
            rpc_url=args.rpc_url,
            method_name=args.method_name,
            credentials_path=args.credentials_path,
            symbols=tuple(symbols),
            oracle_endpoint=args.oracle_endpoint,
            min_count=args.min_count,
            ask_count=args.ask_count,
            interval=args.interval,
            compute_budget=args.compute_budget,
            attached_value=args.attached_value,
            fetch_timeout=args.fetch_timeout,
            submit_timeout=args.submit_timeout,
            max_backoff=(
                max(args.max_backoff, args.interval)
                if args.max_backoff is not None
                else None
            ),
            schema_cooldown=args.schema_cooldown,
            countdown=args.countdown,
        )
    except ValueError as e:
        parser.error(str(e))


def build_relay_loop(config: RelayConfig) -> RelayLoop:
    """Load the signing key, connect to the network and wire the loop.

    :raises CredentialError: If the signing key cannot be loaded.
    :raises OSError: If the contract ABI cannot be read.
    """
    account = FileKeyStore(config.credentials_path).load(config.network, config.sender)

    contract_utility = ContractUtility(
        config.network, rpc_url=config.rpc_url, request_timeout=config.submit_timeout
    )
    ledger_client = Web3LedgerClient(
        w3=contract_utility.w3,
        account=account,
        abi=ContractUtility.get_abi("StdReferenceBasic"),
        receipt_timeout=config.submit_timeout,
    )
    oracle_client = OracleClient(config.oracle_endpoint, timeout=config.fetch_timeout)
    return RelayLoop(config, oracle_client, ledger_client)


def main() -> None:
    """Main entry point for the Band Price Relayer CLI."""
    parser = build_parser()
    args = parser.parse_args()

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    config = build_config(parser, args)

    # Log configuration
    logger.info("=" * 60)
    logger.info("Band Price Relayer")
    logger.info("=" * 60)
    logger.info(f"Network:           {config.network}")
    logger.info(f"RPC URL:           {config.rpc_url or NETWORKS.get(config.network, config.network)}")
    logger.info(f"Sender:            {config.sender}")
    logger.info(f"Contract:          {config.contract_id}.{config.method_name}")
    logger.info(f"Symbols:           {', '.join(config.symbols)}")
    logger.info(f"Oracle:            {config.oracle_endpoint}")
    logger.info(f"Min/Ask Count:     {config.min_count}/{config.ask_count}")
    logger.info(f"Interval:          {config.interval}s")
    logger.info(f"Gas Limit:         {config.compute_budget}")
    logger.info(f"Timeouts:          fetch {config.fetch_timeout}s, submit {config.submit_timeout}s")
    logger.info(f"Backoff:           max {config.max_backoff}s, cooldown {config.schema_cooldown}s")
    logger.info("=" * 60)

    try:
        relay_loop = build_relay_loop(config)
        asyncio.run(relay_loop.run())
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
