"""RelayConfig: Immutable relayer configuration fixed at startup."""

from __future__ import annotations

from dataclasses import dataclass

from .KeyStore import DEFAULT_CREDENTIALS_PATH
from .OracleClient import OracleClient
from .PriceNormalizer import E9

DEFAULT_SYMBOLS = ("BTC", "ETH")


@dataclass(frozen=True)
class RelayConfig:
    """Settings for one relayer instance.

    :ivar sender: Account identifier of the signing key.
    :ivar contract_id: Address of the relay contract.
    :ivar network: Network name (sapphire, sapphire-testnet, sapphire-localnet)
        or an RPC URL.
    :ivar rpc_url: Optional RPC URL overriding the network default.
    :ivar method_name: Contract method receiving the batch.
    :ivar credentials_path: Root directory of the credential store.
    :ivar symbols: Symbols requested from the oracle, in request order.
    :ivar oracle_endpoint: Oracle ``request_prices`` URL.
    :ivar min_count: Minimum number of responding oracle sources.
    :ivar ask_count: Number of oracle sources queried.
    :ivar scale: Fixed-point multiplier every quote must carry.
    :ivar interval: Seconds to wait between successful cycles.
    :ivar compute_budget: Gas limit of each relay transaction.
    :ivar attached_value: Value sent with each relay call, in wei.
    :ivar fetch_timeout: Deadline of the oracle request in seconds.
    :ivar submit_timeout: Deadline of RPC requests and the receipt wait.
    :ivar max_backoff: Cap on the delay after transient failures
        (default: interval, i.e. no backoff).
    :ivar schema_cooldown: Minimum delay after permanent failures
        (default: interval).
    :ivar countdown: Show a live countdown while waiting.
    """

    sender: str
    contract_id: str
    network: str = "sapphire-testnet"
    rpc_url: str | None = None
    method_name: str = "relay"
    credentials_path: str = DEFAULT_CREDENTIALS_PATH
    symbols: tuple[str, ...] = DEFAULT_SYMBOLS
    oracle_endpoint: str = OracleClient.DEFAULT_ENDPOINT
    min_count: int = 3
    ask_count: int = 4
    scale: int = E9
    interval: int = 10
    compute_budget: int = 500_000
    attached_value: int = 0
    fetch_timeout: float = 10.0
    submit_timeout: float = 60.0
    max_backoff: float | None = None
    schema_cooldown: float | None = None
    countdown: bool = True

    def __post_init__(self) -> None:
        """Validate the configuration.

        :raises ValueError: If any value is out of range.
        """
        # Store symbols as a tuple so the config stays hashable and read-only
        object.__setattr__(self, "symbols", tuple(self.symbols))
        if self.max_backoff is None:
            object.__setattr__(self, "max_backoff", float(self.interval))
        if self.schema_cooldown is None:
            object.__setattr__(self, "schema_cooldown", float(self.interval))

        if not self.sender:
            raise ValueError("sender must be specified")
        if not self.contract_id:
            raise ValueError("contract_id must be specified")
        if not self.method_name:
            raise ValueError("method_name must be specified")
        if not self.symbols:
            raise ValueError("At least one symbol must be specified")
        if self.min_count < 1:
            raise ValueError("min_count must be at least 1")
        if self.ask_count < self.min_count:
            raise ValueError("ask_count must be at least min_count")
        if self.scale < 1:
            raise ValueError("scale must be positive")
        if self.interval < 1:
            raise ValueError("interval must be at least 1 second")
        if self.compute_budget < 1:
            raise ValueError("compute_budget must be positive")
        if self.attached_value < 0:
            raise ValueError("attached_value must not be negative")
        if self.fetch_timeout <= 0 or self.submit_timeout <= 0:
            raise ValueError("timeouts must be positive")
        if self.max_backoff < self.interval:
            raise ValueError("max_backoff must be at least interval")
        if self.schema_cooldown < 0:
            raise ValueError("schema_cooldown must not be negative")
