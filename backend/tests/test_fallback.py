import asyncio

import pytest

from cryptosage.services.base import (
    ChainExhaustedError,
    DecodeError,
    NetworkError,
    RegionRestrictedError,
    ServerError,
    UnsupportedParameterError,
)
from cryptosage.services.fallback import FallbackChain, ProviderStep


class Recorder:
    """Provider stub that returns or raises scripted outcomes and counts calls."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    async def __call__(self, *args):
        self.calls.append(args)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


async def test_first_success_short_circuits():
    primary = Recorder("primary")
    secondary = Recorder("secondary")
    chain = FallbackChain("test", [ProviderStep("a", primary), ProviderStep("b", secondary)])

    assert await chain.run() == "primary"
    assert chain.last_provider == "a"
    assert len(secondary.calls) == 0


async def test_falls_through_in_priority_order():
    a = Recorder(ServerError("a", "HTTP 500"))
    b = Recorder(DecodeError("b", "schema mismatch"))
    c = Recorder("from c")
    chain = FallbackChain("test", [ProviderStep("a", a), ProviderStep("b", b), ProviderStep("c", c)])

    assert await chain.run() == "from c"
    assert chain.last_provider == "c"
    assert (len(a.calls), len(b.calls), len(c.calls)) == (1, 1, 1)


async def test_exhaustion_carries_every_failure():
    a = Recorder(NetworkError("a", "refused"))
    b = Recorder(ServerError("b", "HTTP 503"))
    chain = FallbackChain("prices", [ProviderStep("a", a), ProviderStep("b", b)])

    with pytest.raises(ChainExhaustedError) as exc_info:
        await chain.run()

    error = exc_info.value
    assert [f.provider for f in error.failures] == ["a", "b"]
    assert error.details["providers"] == ["a", "b"]
    assert len(a.calls) == 1 and len(b.calls) == 1


async def test_recovery_step_skipped_without_matching_failure():
    primary = Recorder(ServerError("primary", "HTTP 500"))
    mirror = Recorder("mirror")
    last = Recorder("last")
    chain = FallbackChain(
        "test",
        [
            ProviderStep("primary", primary),
            ProviderStep("mirror", mirror, recovers=RegionRestrictedError),
            ProviderStep("last", last),
        ],
    )

    assert await chain.run() == "last"
    assert mirror.calls == []


async def test_recovery_step_runs_once_with_triggering_failure():
    blocked = RegionRestrictedError("primary", "HTTP 451", {"status": 451})
    primary = Recorder(blocked)
    mirror = Recorder(ServerError("mirror", "HTTP 500"))
    last = Recorder("last")
    chain = FallbackChain(
        "test",
        [
            ProviderStep("primary", primary),
            ProviderStep("mirror", mirror, recovers=RegionRestrictedError),
            ProviderStep("last", last),
        ],
    )

    assert await chain.run() == "last"
    assert mirror.calls == [(blocked,)]


async def test_recovery_only_follows_the_immediately_preceding_failure():
    # An unsupported-parameter recovery must not fire after a region block
    primary = Recorder(RegionRestrictedError("primary", "HTTP 451"))
    normalized = Recorder("normalized")
    chain = FallbackChain(
        "test",
        [
            ProviderStep("primary", primary),
            ProviderStep("normalized", normalized, recovers=UnsupportedParameterError),
        ],
    )

    with pytest.raises(ChainExhaustedError):
        await chain.run()
    assert normalized.calls == []


async def test_timeout_counts_as_network_failure():
    async def slow():
        await asyncio.sleep(5)
        return "late"

    fast = Recorder("fast")
    chain = FallbackChain("test", [ProviderStep("slow", slow), ProviderStep("fast", fast)], timeout=0.05)

    assert await chain.run() == "fast"


async def test_timeout_failure_is_network_error():
    async def slow():
        await asyncio.sleep(5)

    chain = FallbackChain("test", [ProviderStep("slow", slow)], timeout=0.05)

    with pytest.raises(ChainExhaustedError) as exc_info:
        await chain.run()
    assert isinstance(exc_info.value.failures[0], NetworkError)


async def test_transient_failure_retried_in_place():
    flaky = Recorder(NetworkError("flaky", "reset"), "recovered")
    backup = Recorder("backup")
    chain = FallbackChain(
        "test",
        [ProviderStep("flaky", flaky, retries=1, retry_delay=0), ProviderStep("backup", backup)],
    )

    assert await chain.run() == "recovered"
    assert len(flaky.calls) == 2
    assert backup.calls == []


async def test_decode_failure_is_not_retried():
    broken = Recorder(DecodeError("broken", "schema mismatch"), "never")
    backup = Recorder("backup")
    chain = FallbackChain(
        "test",
        [ProviderStep("broken", broken, retries=3, retry_delay=0), ProviderStep("backup", backup)],
    )

    assert await chain.run() == "backup"
    assert len(broken.calls) == 1
