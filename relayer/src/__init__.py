"""
Band Price Relayer - Oracle to Contract Relay Module

This module relays oracle price quotes to an on-chain reference contract:
- QuoteBatch: Raw oracle quotes and the canonical relay payload
- PriceNormalizer: Multiplier validation and fixed-point conversion
- OracleClient: HTTP client for the oracle request_prices endpoint
- LedgerClient: Signed contract submission via Web3
- CycleBackoff: Delay policy between relay cycles
- RelayLoop: Main orchestrator for the fetch/submit loop
"""

from .CycleBackoff import BackoffStatus, CycleBackoff
from .errors import (
    ContractRejectedError,
    CredentialError,
    FetchOrSchemaError,
    OracleError,
    OracleHTTPError,
    OracleSchemaError,
    ParseError,
    RelayError,
    SchemaViolation,
    SubmissionError,
    UnsupportedRateError,
)
from .KeyStore import FileKeyStore
from .LedgerClient import LedgerClient, Web3LedgerClient
from .OracleClient import OracleClient
from .PriceNormalizer import E9, normalize
from .QuoteBatch import QuoteBatch, RawQuote, SubmissionResult
from .RelayConfig import RelayConfig
from .RelayLoop import CycleReport, RelayLoop

__all__ = [
    "BackoffStatus",
    "ContractRejectedError",
    "CredentialError",
    "CycleBackoff",
    "CycleReport",
    "E9",
    "FetchOrSchemaError",
    "FileKeyStore",
    "LedgerClient",
    "OracleClient",
    "OracleError",
    "OracleHTTPError",
    "OracleSchemaError",
    "ParseError",
    "QuoteBatch",
    "RawQuote",
    "RelayConfig",
    "RelayError",
    "RelayLoop",
    "SchemaViolation",
    "SubmissionError",
    "SubmissionResult",
    "UnsupportedRateError",
    "Web3LedgerClient",
    "normalize",
]
