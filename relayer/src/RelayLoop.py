"""RelayLoop: Fetch oracle quotes and relay them on-chain, forever.

Each cycle runs strictly in sequence:

1. Fetch raw quotes for the configured symbols from the oracle
2. Normalize them into a QuoteBatch
3. Submit the batch to the relay contract and wait for the receipt
4. Report the outcome
5. Wait before the next cycle, showing a countdown

Errors in steps 1-3 are logged and end the cycle early; they never stop
the loop. The wait after a failure comes from CycleBackoff.
"""

from __future__ import annotations

import asyncio
import logging
import math
import sys
from dataclasses import dataclass
from typing import IO, Awaitable, Callable

from .CycleBackoff import CycleBackoff
from .errors import OracleError, OracleSchemaError, RelayError
from .LedgerClient import LedgerClient
from .OracleClient import OracleClient
from .PriceNormalizer import normalize
from .QuoteBatch import QuoteBatch, RawQuote, SubmissionResult
from .RelayConfig import RelayConfig

logger = logging.getLogger(__name__)

SEPARATOR = "=-" * 39 + "="


@dataclass
class CycleReport:
    """Outcome of a single relay cycle.

    :ivar cycle: Cycle number, starting at 1.
    :ivar batch: Normalized batch, if normalization succeeded.
    :ivar result: Submission result, if submission succeeded.
    :ivar error: Error that ended the cycle, if any.
    :ivar stage: Stage that failed ("fetch", "normalize" or "submit").
    :ivar delay: Seconds to wait before the next cycle.
    """

    cycle: int
    batch: QuoteBatch | None = None
    result: SubmissionResult | None = None
    error: Exception | None = None
    stage: str | None = None
    delay: float = 0.0

    @property
    def success(self) -> bool:
        return self.error is None


class RelayLoop:
    """Sequential fetch-normalize-submit loop.

    :ivar config: Relayer configuration.
    :ivar oracle_client: Source of raw quotes.
    :ivar ledger_client: Submits batches to the relay contract.
    :ivar backoff: Delay policy between cycles.
    :ivar cycle: Number of cycles started so far.
    """

    def __init__(
        self,
        config: RelayConfig,
        oracle_client: OracleClient,
        ledger_client: LedgerClient,
        backoff: CycleBackoff | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        stream: IO[str] | None = None,
    ) -> None:
        """Initialize the relay loop.

        :param config: Relayer configuration.
        :param oracle_client: Client used to fetch raw quotes.
        :param ledger_client: Client used to submit batches.
        :param backoff: Delay policy. Built from config if not provided.
        :param sleep: Coroutine function used to wait (default: asyncio.sleep).
        :param stream: Stream the countdown is written to (default: stdout).
        """
        self.config = config
        self.oracle_client = oracle_client
        self.ledger_client = ledger_client
        self.backoff = backoff or CycleBackoff(
            interval=config.interval,
            max_backoff_seconds=config.max_backoff,
            cooldown_seconds=config.schema_cooldown,
        )
        self._sleep = sleep
        self.stream = stream or sys.stdout
        self.cycle = 0

    async def _fetch(self) -> list[RawQuote]:
        """Fetch raw quotes, bounded by the configured fetch timeout.

        :raises OracleError: If the oracle does not answer in time.
        """
        try:
            return await asyncio.wait_for(
                self.oracle_client.fetch(
                    self.config.symbols, self.config.min_count, self.config.ask_count
                ),
                timeout=self.config.fetch_timeout,
            )
        except asyncio.TimeoutError:
            raise OracleError(
                f"No oracle response within {self.config.fetch_timeout}s"
            ) from None

    async def _submit(self, batch: QuoteBatch) -> SubmissionResult:
        # The ledger client blocks; run it off the event loop and wait for it
        return await asyncio.to_thread(
            self.ledger_client.submit,
            self.config.contract_id,
            self.config.method_name,
            batch,
            self.config.compute_budget,
            self.config.attached_value,
        )

    async def run_cycle(self) -> CycleReport:
        """Run one fetch-normalize-submit cycle.

        Never raises for cycle errors; they are recorded in the report.

        :returns: Outcome of the cycle, including the delay before the next.
        """
        self.cycle += 1
        report = CycleReport(cycle=self.cycle)
        stage = "fetch"

        try:
            logger.info(f"Cycle {self.cycle}: getting prices for {', '.join(self.config.symbols)}")
            raw_quotes = await self._fetch()

            stage = "normalize"
            report.batch = normalize(raw_quotes, self.config.scale)
            if not report.batch:
                raise OracleSchemaError("Oracle returned no quotes")
            logger.info(f"Cycle {self.cycle}: fetched {report.batch.describe()}")

            stage = "submit"
            logger.info(
                f"Cycle {self.cycle}: sending {self.config.method_name} "
                f"to {self.config.contract_id}"
            )
            report.result = await self._submit(report.batch)
        except RelayError as e:
            report.error = e
            report.stage = stage
        except Exception as e:  # Defensive: misbehaving client
            logger.exception(f"Cycle {self.cycle}: unexpected error during {stage}")
            report.error = e
            report.stage = stage

        if report.error is None:
            report.delay = self.backoff.record_success()
        else:
            transient = getattr(report.error, "transient", True)
            report.delay = self.backoff.record_failure(transient=transient)

        self.report(report)
        return report

    def report(self, report: CycleReport) -> None:
        """Log a human-readable status line for a finished cycle."""
        if report.success and report.result is not None:
            logger.info(
                f"Cycle {report.cycle}: status={report.result.status} "
                f"tx={report.result.transaction_ref} "
                f"block={report.result.block_number} gas_used={report.result.gas_used}"
            )
            return

        error = report.error
        message = f"Cycle {report.cycle}: {report.stage} failed: {type(error).__name__}: {error}"
        if report.batch and report.stage == "submit":
            message += f" (batch: {report.batch.describe()})"
        logger.error(message)
        if self.backoff.status.consecutive_failures > 1:
            logger.warning(
                f"{self.backoff.status.consecutive_failures} consecutive failed cycles, "
                f"next attempt in {report.delay:.0f}s"
            )

    async def wait(self, delay: float) -> None:
        """Wait before the next cycle, updating the countdown every second.

        :param delay: Seconds to wait; rounded up to a whole second.
        """
        remaining = math.ceil(delay)
        while remaining > 0:
            if self.config.countdown:
                self.stream.write(f"\rcountdown: {remaining} ")
                self.stream.flush()
            await self._sleep(1)
            remaining -= 1
        if self.config.countdown:
            self.stream.write(f"\n{SEPARATOR}\n")
            self.stream.flush()

    async def run(self) -> None:
        """Run relay cycles until the process is terminated."""
        logger.info(
            f"Starting relay loop: symbols={list(self.config.symbols)}, "
            f"contract={self.config.contract_id}, interval={self.config.interval}s"
        )
        try:
            while True:
                report = await self.run_cycle()
                await self.wait(report.delay)
        finally:
            await self.oracle_client.close()
