"""Exceptions raised while relaying oracle prices.

Errors raised inside a relay cycle are caught at the cycle boundary by
RelayLoop. The ``transient`` flag decides how long the loop waits before
trying again: transient errors back off exponentially, permanent ones wait
for the longer cooldown.
"""


class RelayError(Exception):
    """Base exception for relay errors.

    :cvar transient: True if retrying soon may succeed.
    """

    transient = True


class FetchOrSchemaError(RelayError):
    """Raised when quotes cannot be fetched or do not match the schema."""

    pass


class OracleError(FetchOrSchemaError):
    """Raised when the oracle request fails (network error, timeout)."""

    pass


class OracleHTTPError(OracleError):
    """Raised when the oracle answers with a non-2xx status.

    :ivar status_code: HTTP status code from the failed request.
    """

    def __init__(self, status_code: int, message: str):
        """Initialize the HTTP error.

        :param status_code: HTTP status code.
        :param message: Error message from response.
        """
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}: {message}")


class OracleSchemaError(FetchOrSchemaError):
    """Raised when the oracle response is not shaped as expected."""

    pass


class SchemaViolation(FetchOrSchemaError):
    """Raised when a quote carries a multiplier other than the fixed scale."""

    transient = False


class ParseError(FetchOrSchemaError):
    """Raised when a numeric quote field cannot be parsed."""

    transient = False


class SubmissionError(RelayError):
    """Raised when the quote batch cannot be signed or submitted."""

    pass


class UnsupportedRateError(SubmissionError):
    """Raised when a rate cannot be encoded as a fixed-point contract value."""

    transient = False


class ContractRejectedError(SubmissionError):
    """Raised when the relay transaction was mined but reverted.

    :ivar transaction_ref: Hash of the reverted transaction.
    """

    transient = False

    def __init__(self, transaction_ref: str, message: str = "transaction reverted"):
        self.transaction_ref = transaction_ref
        super().__init__(f"{message} (tx {transaction_ref})")


class CredentialError(RelayError):
    """Raised when the signing credential cannot be loaded."""

    transient = False
