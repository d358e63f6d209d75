"""Unit tests for RelayLoop."""

import asyncio
import io
import logging

import pytest

from relayer.src.CycleBackoff import CycleBackoff
from relayer.src.errors import (
    ContractRejectedError,
    OracleError,
    OracleSchemaError,
    SchemaViolation,
    SubmissionError,
)
from relayer.src.LedgerClient import LedgerClient
from relayer.src.QuoteBatch import QuoteBatch, RawQuote, SubmissionResult
from relayer.src.RelayConfig import RelayConfig
from relayer.src.RelayLoop import SEPARATOR, RelayLoop

CONTRACT = "0x5FbDB2315678afecb367f032d93F642f64180aa3"

QUOTES = [
    RawQuote("BTC", "1000000000", "42000500000000", "7", "1700000000"),
    RawQuote("ETH", "1000000000", "2200000000000", "8", "1700000003"),
]


class StopRelay(Exception):
    """Raised by the fake sleep to end an otherwise endless run()."""


class FakeOracle:
    """Oracle client returning canned responses, repeating the last one."""

    def __init__(self, responses, events=None) -> None:
        self.responses = list(responses)
        self.events = events if events is not None else []
        self.calls: list[tuple] = []
        self.closed = False

    async def fetch(self, symbols, min_count, ask_count):
        """Record the request and return or raise the next response."""
        self.calls.append((tuple(symbols), min_count, ask_count))
        self.events.append("fetch")
        await asyncio.sleep(0)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response

    async def close(self) -> None:
        self.closed = True


class FakeLedger(LedgerClient):
    """Ledger client returning canned outcomes without a chain connection."""

    def __init__(self, outcomes, events=None) -> None:
        self.outcomes = list(outcomes)
        self.events = events if events is not None else []
        self.calls: list[tuple] = []

    def submit(self, contract_id, method_name, batch, compute_budget, attached_value):
        """Record the submission and return or raise the next outcome."""
        self.events.append("submit-start")
        self.calls.append((contract_id, method_name, batch, compute_budget, attached_value))
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        self.events.append("submit-end")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


OK = SubmissionResult(status="success", transaction_ref="0xabc", block_number=10, gas_used=81000)


def make_config(**kwargs) -> RelayConfig:
    """Build a config with test defaults and the countdown disabled."""
    kwargs.setdefault("sender", "relayer")
    kwargs.setdefault("contract_id", CONTRACT)
    kwargs.setdefault("countdown", False)
    return RelayConfig(**kwargs)


def make_loop(oracle, ledger, config=None, sleeps=None, stop_after=None, stream=None):
    """Build a RelayLoop whose sleep records delays instead of waiting."""
    sleeps = sleeps if sleeps is not None else []

    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)
        if stop_after is not None and len(sleeps) >= stop_after:
            raise StopRelay()

    return RelayLoop(
        config or make_config(),
        oracle,
        ledger,
        sleep=fake_sleep,
        stream=stream or io.StringIO(),
    )


class TestRunCycleSuccess:
    """Test successful cycles."""

    def test_fetch_normalize_submit(self) -> None:
        """Fetched quotes should reach the ledger as one aligned batch."""
        oracle = FakeOracle([QUOTES])
        ledger = FakeLedger([OK])
        loop = make_loop(oracle, ledger)

        report = asyncio.run(loop.run_cycle())

        assert report.success
        assert report.cycle == 1
        assert report.result == OK
        assert report.delay == 10.0
        assert oracle.calls == [(("BTC", "ETH"), 3, 4)]
        assert ledger.calls == [
            (
                CONTRACT,
                "relay",
                QuoteBatch(
                    ["BTC", "ETH"],
                    [42000500000000, 2200000000000],
                    [1700000000000000000, 1700000003000000000],
                    [7, 8],
                ),
                500_000,
                0,
            )
        ]

    def test_configured_submission_parameters(self) -> None:
        """Configured symbols, counts and call parameters should be used."""
        oracle = FakeOracle([QUOTES])
        ledger = FakeLedger([OK])
        config = make_config(
            symbols=("ETH",), min_count=2, ask_count=3, method_name="push",
            compute_budget=300_000, attached_value=5,
        )
        asyncio.run(make_loop(oracle, ledger, config=config).run_cycle())

        assert oracle.calls == [(("ETH",), 2, 3)]
        contract_id, method_name, _, compute_budget, attached_value = ledger.calls[0]
        assert (method_name, compute_budget, attached_value) == ("push", 300_000, 5)

    def test_success_logs_status_and_transaction(self, caplog) -> None:
        """The batch, status and transaction should be logged."""
        loop = make_loop(FakeOracle([QUOTES]), FakeLedger([OK]))

        with caplog.at_level(logging.INFO):
            asyncio.run(loop.run_cycle())

        assert "BTC=42000500000000@7" in caplog.text
        assert "status=success" in caplog.text
        assert "tx=0xabc" in caplog.text


class TestRunCycleFailures:
    """Test that cycle errors are recorded, logged and never raised."""

    def test_oracle_failure_skips_submission(self, caplog) -> None:
        """Nothing should be submitted when the fetch fails."""
        oracle = FakeOracle([OracleError("connection refused")])
        ledger = FakeLedger([OK])
        loop = make_loop(oracle, ledger)

        with caplog.at_level(logging.ERROR):
            report = asyncio.run(loop.run_cycle())

        assert not report.success
        assert report.stage == "fetch"
        assert isinstance(report.error, OracleError)
        assert report.batch is None
        assert ledger.calls == []
        assert "fetch failed" in caplog.text
        assert "connection refused" in caplog.text

    def test_schema_violation_skips_submission(self) -> None:
        """A wrong multiplier should skip submission and wait the cooldown."""
        bad = [QUOTES[0], RawQuote("ETH", "100", "2200", "8", "1700000003")]
        ledger = FakeLedger([OK])
        loop = make_loop(FakeOracle([bad]), ledger, config=make_config(schema_cooldown=60))

        report = asyncio.run(loop.run_cycle())

        assert report.stage == "normalize"
        assert isinstance(report.error, SchemaViolation)
        assert report.batch is None
        assert ledger.calls == []
        assert report.delay == 60.0

    def test_empty_oracle_result_skips_submission(self) -> None:
        """An empty oracle result is a schema error, not an empty batch."""
        ledger = FakeLedger([OK])
        report = asyncio.run(make_loop(FakeOracle([[]]), ledger).run_cycle())

        assert isinstance(report.error, OracleSchemaError)
        assert ledger.calls == []

    def test_submission_failure_is_reported(self, caplog) -> None:
        """Submission errors should be logged with the batch kept."""
        ledger = FakeLedger([SubmissionError("nonce too low")])
        loop = make_loop(FakeOracle([QUOTES]), ledger)

        with caplog.at_level(logging.ERROR):
            report = asyncio.run(loop.run_cycle())

        assert report.stage == "submit"
        assert report.batch is not None
        assert report.result is None
        assert "submit failed" in caplog.text
        assert "nonce too low" in caplog.text
        assert report.delay == 10.0

    def test_contract_rejection_waits_cooldown(self) -> None:
        """A reverted transaction should wait the configured cooldown."""
        ledger = FakeLedger([ContractRejectedError("0xdead", "relay reverted")])
        loop = make_loop(FakeOracle([QUOTES]), ledger, config=make_config(schema_cooldown=60))

        report = asyncio.run(loop.run_cycle())

        assert report.stage == "submit"
        assert report.delay == 60.0

    def test_default_config_waits_interval_after_failures(self) -> None:
        """Without backoff settings failures wait the regular interval."""
        bad = [RawQuote("BTC", "1", "1", "1", "1")]
        oracle = FakeOracle([OracleError("down"), OracleError("down"), bad])
        loop = make_loop(oracle, FakeLedger([OK]))

        async def three_cycles():
            return [await loop.run_cycle() for _ in range(3)]

        reports = asyncio.run(three_cycles())

        assert [report.delay for report in reports] == [10.0, 10.0, 10.0]
        assert isinstance(reports[2].error, SchemaViolation)

    def test_unexpected_error_is_contained(self, caplog) -> None:
        """Errors outside the hierarchy should be logged, not raised."""
        ledger = FakeLedger([RuntimeError("boom")])
        loop = make_loop(FakeOracle([QUOTES]), ledger)

        with caplog.at_level(logging.ERROR):
            report = asyncio.run(loop.run_cycle())

        assert isinstance(report.error, RuntimeError)
        assert report.stage == "submit"
        assert "unexpected error during submit" in caplog.text

    def test_fetch_timeout(self) -> None:
        """A hanging oracle should fail the cycle after the fetch timeout."""

        class HangingOracle(FakeOracle):
            async def fetch(self, symbols, min_count, ask_count):
                await asyncio.sleep(10)

        ledger = FakeLedger([OK])
        loop = make_loop(HangingOracle([QUOTES]), ledger, config=make_config(fetch_timeout=0.05))

        report = asyncio.run(loop.run_cycle())

        assert isinstance(report.error, OracleError)
        assert "No oracle response within 0.05s" in str(report.error)
        assert ledger.calls == []

    def test_next_cycle_unaffected_by_failure(self) -> None:
        """A failed cycle should not prevent the next one from succeeding."""
        oracle = FakeOracle([QUOTES])
        ledger = FakeLedger([SubmissionError("rejected"), OK])
        loop = make_loop(oracle, ledger)

        async def two_cycles():
            return [await loop.run_cycle(), await loop.run_cycle()]

        first, second = asyncio.run(two_cycles())

        assert not first.success
        assert second.success
        assert second.cycle == 2
        assert len(ledger.calls) == 2


class TestWait:
    """Test pacing between cycles."""

    def test_sleeps_one_second_per_tick(self) -> None:
        """The wait should tick once per second."""
        sleeps: list[float] = []
        loop = make_loop(FakeOracle([QUOTES]), FakeLedger([OK]), sleeps=sleeps)

        asyncio.run(loop.wait(3))

        assert sleeps == [1, 1, 1]

    def test_fractional_delay_rounds_up(self) -> None:
        """Partial seconds should add a whole tick."""
        sleeps: list[float] = []
        loop = make_loop(FakeOracle([QUOTES]), FakeLedger([OK]), sleeps=sleeps)

        asyncio.run(loop.wait(2.5))

        assert len(sleeps) == 3

    def test_countdown_output(self) -> None:
        """The countdown should overwrite one line and end with a separator."""
        stream = io.StringIO()
        loop = make_loop(
            FakeOracle([QUOTES]), FakeLedger([OK]),
            config=make_config(countdown=True), stream=stream,
        )

        asyncio.run(loop.wait(3))

        output = stream.getvalue()
        assert "\rcountdown: 3 " in output
        assert "\rcountdown: 1 " in output
        assert output.endswith(f"\n{SEPARATOR}\n")

    def test_countdown_disabled(self) -> None:
        """Nothing should be written when the countdown is off."""
        stream = io.StringIO()
        loop = make_loop(FakeOracle([QUOTES]), FakeLedger([OK]), stream=stream)

        asyncio.run(loop.wait(3))

        assert stream.getvalue() == ""


class TestRun:
    """Test the endless loop."""

    def test_cycles_are_sequential(self) -> None:
        """Submission of cycle N completes before fetch of cycle N+1."""
        events: list[str] = []
        oracle = FakeOracle([QUOTES], events)
        ledger = FakeLedger([OK], events)
        loop = make_loop(oracle, ledger, config=make_config(interval=1), stop_after=3)

        with pytest.raises(StopRelay):
            asyncio.run(loop.run())

        assert events == [
            "fetch", "submit-start", "submit-end",
            "fetch", "submit-start", "submit-end",
            "fetch", "submit-start", "submit-end",
        ]

    def test_keeps_running_through_failures(self) -> None:
        """Failures never end the loop; it waits and retries."""
        oracle = FakeOracle([OracleError("down"), OracleError("down"), QUOTES])
        ledger = FakeLedger([OK])
        sleeps: list[float] = []
        loop = make_loop(oracle, ledger, config=make_config(interval=1), sleeps=sleeps, stop_after=3)

        with pytest.raises(StopRelay):
            asyncio.run(loop.run())

        assert len(oracle.calls) == 3
        assert len(ledger.calls) == 1
        assert loop.cycle == 3

    def test_backoff_delays_between_failed_cycles(self) -> None:
        """Consecutive transient failures should double the wait."""
        oracle = FakeOracle([OracleError("down")])
        sleeps: list[float] = []
        backoff_loop = make_loop(
            oracle, FakeLedger([OK]), config=make_config(interval=1, max_backoff=4),
            sleeps=sleeps, stop_after=1 + 2 + 4,
        )

        with pytest.raises(StopRelay):
            asyncio.run(backoff_loop.run())

        # Delays of 1s, 2s and 4s: three cycles
        assert len(oracle.calls) == 3
        assert backoff_loop.backoff.status.consecutive_failures == 3

    def test_closes_oracle_client_on_exit(self) -> None:
        """The oracle client should be closed when the loop ends."""
        oracle = FakeOracle([QUOTES])
        loop = make_loop(oracle, FakeLedger([OK]), config=make_config(interval=1), stop_after=1)

        with pytest.raises(StopRelay):
            asyncio.run(loop.run())

        assert oracle.closed

    def test_uses_injected_backoff(self) -> None:
        """An injected backoff policy should replace the configured one."""
        backoff = CycleBackoff(interval=5)
        loop = RelayLoop(make_config(), FakeOracle([QUOTES]), FakeLedger([OK]), backoff=backoff)
        assert loop.backoff is backoff
