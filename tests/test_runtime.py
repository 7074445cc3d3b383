"""Tests for the watcher runtime using an in-memory market client."""

from __future__ import annotations

import asyncio
import io
import os
import signal
import textwrap
from pathlib import Path
from typing import Optional

import pytest

pytest.importorskip("pydantic")

from alerts import ConsoleAlertWriter
from app.runtime import WatcherRuntime, parse_args, select_token
from common.models import MarketInfo, TokenInfo
from markets import MarketDataError, MarketNotFoundError


class FakeClient:
    """Serve canned markets and a scripted sequence of prices per token."""

    def __init__(
        self,
        markets: dict[str, MarketInfo],
        prices: dict[str, list[object]],
    ) -> None:
        self.markets = markets
        self.prices = prices
        self.price_calls: list[str] = []

    async def resolve_by_slug(self, slug: str) -> MarketInfo:
        if slug not in self.markets:
            raise MarketNotFoundError(f"No market found for slug: {slug}")
        return self.markets[slug]

    async def resolve_by_condition_id(self, condition_id: str) -> MarketInfo:
        if condition_id not in self.markets:
            raise MarketNotFoundError(f"No market found for condition_id: {condition_id}")
        return self.markets[condition_id]

    async def get_mid_price(self, token_id: str) -> Optional[float]:
        self.price_calls.append(token_id)
        script = self.prices.get(token_id, [None])
        value = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(value, Exception):
            raise value
        return value  # type: ignore[return-value]


def yes_no_market(question: str, yes: str, no: str) -> MarketInfo:
    return MarketInfo(
        question=question,
        tokens=[TokenInfo(token_id=no, outcome="No"), TokenInfo(token_id=yes, outcome="Yes")],
    )


def write_config(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "watches.yaml"
    path.write_text(textwrap.dedent(content))
    return path


TWO_WATCHES = """
poll_interval: 1
watches:
  - slug: rain
    name: Rain
    alerts:
      - direction: above
        threshold: 0.5
        message: "rain likely"
  - slug: snow
    alerts:
      - direction: below
        threshold: 0.2
logging:
  file: {log_file}
"""


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    return write_config(tmp_path, TWO_WATCHES.format(log_file=tmp_path / "watcher.log"))


def make_runtime(
    config_path: Path, client: FakeClient, *, once: bool = True
) -> tuple[WatcherRuntime, io.StringIO]:
    stream = io.StringIO()
    runtime = WatcherRuntime(
        config_path, once=once, client=client, writer=ConsoleAlertWriter(stream=stream)
    )
    return runtime, stream


def test_select_token_prefers_yes_then_first() -> None:
    yes = TokenInfo(token_id="1", outcome="YES")
    other = TokenInfo(token_id="2", outcome="Trump")

    assert select_token([other, yes]) is yes
    assert select_token([other]) is other
    assert select_token([]) is None


def test_parse_args_defaults_and_flags() -> None:
    args = parse_args([])
    assert args.config == "watches.yaml"
    assert args.once is False

    args = parse_args(["-c", "other.yaml", "--once"])
    assert args.config == "other.yaml"
    assert args.once is True


@pytest.mark.asyncio
async def test_once_mode_prints_snapshot_and_fires_alerts(config_path: Path) -> None:
    client = FakeClient(
        markets={
            "rain": yes_no_market("Rain?", yes="rain-yes-token-0001", no="rain-no"),
            "snow": yes_no_market("Snow?", yes="snow-yes", no="snow-no"),
        },
        prices={"rain-yes-token-0001": [0.42, 0.61], "snow-yes": [None]},
    )
    runtime, stream = make_runtime(config_path, client)

    assert await runtime.run() == 0

    output = stream.getvalue()
    assert "Poll interval: 1s" in output
    assert "Watches: 2" in output
    assert "Resolving 'Rain' (rain)... OK (token: rain-yes-tok...)" in output
    assert "Watching 2 market(s)" in output
    assert "  Rain: 0.4200 (42.0%)" in output
    assert "  snow: no data" in output
    alert_lines = [line for line in output.splitlines() if "ALERT:" in line]
    assert len(alert_lines) == 1
    assert "Rain" in alert_lines[0]
    assert "0.6100" in alert_lines[0]
    assert "rain likely" in alert_lines[0]
    assert client.price_calls == ["rain-yes-token-0001", "snow-yes"] * 2


@pytest.mark.asyncio
async def test_failed_resolution_drops_only_that_watch(config_path: Path) -> None:
    client = FakeClient(
        markets={"rain": yes_no_market("Rain?", yes="rain-yes", no="rain-no")},
        prices={"rain-yes": [0.3]},
    )
    runtime, stream = make_runtime(config_path, client)

    assert await runtime.run() == 0

    output = stream.getvalue()
    assert "Resolving 'snow' (snow)... FAILED: No market found for slug: snow" in output
    assert "Watching 1 market(s)" in output
    assert "snow-yes" not in client.price_calls


@pytest.mark.asyncio
async def test_market_without_tokens_is_dropped(config_path: Path) -> None:
    client = FakeClient(
        markets={
            "rain": MarketInfo(question="Rain?", tokens=[]),
            "snow": yes_no_market("Snow?", yes="snow-yes", no="snow-no"),
        },
        prices={"snow-yes": [0.5]},
    )
    runtime, stream = make_runtime(config_path, client)

    assert await runtime.run() == 0
    assert "Resolving 'Rain' (rain)... FAILED: No tokens found" in stream.getvalue()


@pytest.mark.asyncio
async def test_no_resolved_watches_exits_non_zero(
    config_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    runtime, _ = make_runtime(config_path, FakeClient(markets={}, prices={}))

    assert await runtime.run() == 1
    assert "No markets could be resolved" in capsys.readouterr().err


@pytest.mark.asyncio
async def test_invalid_config_exits_non_zero(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    path = write_config(tmp_path, "watches:\n  - name: nothing\n    alerts: []\n")
    runtime, stream = make_runtime(path, FakeClient(markets={}, prices={}))

    assert await runtime.run() == 1
    assert "missing 'slug' or 'condition_id'" in capsys.readouterr().err
    assert stream.getvalue() == ""


@pytest.mark.asyncio
async def test_missing_config_exits_non_zero(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    runtime, _ = make_runtime(tmp_path / "nope.yaml", FakeClient(markets={}, prices={}))

    assert await runtime.run() == 1
    assert "Config file not found" in capsys.readouterr().err


@pytest.mark.asyncio
async def test_fetch_error_is_isolated_to_its_watch(config_path: Path) -> None:
    client = FakeClient(
        markets={
            "rain": yes_no_market("Rain?", yes="rain-yes", no="rain-no"),
            "snow": yes_no_market("Snow?", yes="snow-yes", no="snow-no"),
        },
        prices={
            "rain-yes": [0.4, MarketDataError("bad book")],
            "snow-yes": [0.3, 0.1],
        },
    )
    runtime, stream = make_runtime(config_path, client)

    assert await runtime.run() == 0

    output = stream.getvalue()
    assert "Error fetching Rain: bad book" in output
    alert_lines = [line for line in output.splitlines() if "ALERT:" in line]
    assert len(alert_lines) == 1
    assert "snow crossed 0.2" in alert_lines[0]
    assert "↓" in alert_lines[0]


@pytest.mark.asyncio
async def test_timeout_is_reported_as_fetch_failure(config_path: Path) -> None:
    client = FakeClient(
        markets={
            "rain": yes_no_market("Rain?", yes="rain-yes", no="rain-no"),
            "snow": yes_no_market("Snow?", yes="snow-yes", no="snow-no"),
        },
        prices={"rain-yes": [0.4, asyncio.TimeoutError()], "snow-yes": [0.3]},
    )
    runtime, stream = make_runtime(config_path, client)

    assert await runtime.run() == 0
    assert "Error fetching Rain: request timed out" in stream.getvalue()


@pytest.mark.asyncio
async def test_poll_loop_stops_promptly_on_request(config_path: Path) -> None:
    client = FakeClient(
        markets={
            "rain": yes_no_market("Rain?", yes="rain-yes", no="rain-no"),
            "snow": yes_no_market("Snow?", yes="snow-yes", no="snow-no"),
        },
        prices={"rain-yes": [0.4], "snow-yes": [0.3]},
    )
    runtime, _ = make_runtime(config_path, client, once=False)

    task = asyncio.create_task(runtime.run())
    while len(client.price_calls) < 2:
        await asyncio.sleep(0.01)
    runtime.stop()

    assert await asyncio.wait_for(task, timeout=0.5) == 0
    # Only the startup snapshot ran; the first interval had not elapsed.
    assert client.price_calls == ["rain-yes", "snow-yes"]


@pytest.mark.asyncio
async def test_poll_loop_fires_alert_after_one_interval(config_path: Path) -> None:
    client = FakeClient(
        markets={
            "rain": yes_no_market("Rain?", yes="rain-yes", no="rain-no"),
            "snow": yes_no_market("Snow?", yes="snow-yes", no="snow-no"),
        },
        prices={"rain-yes": [0.4, 0.6], "snow-yes": [0.3]},
    )
    runtime, stream = make_runtime(config_path, client, once=False)

    task = asyncio.create_task(runtime.run())
    loop = asyncio.get_running_loop()
    deadline = loop.time() + 3.0
    while "ALERT:" not in stream.getvalue() and loop.time() < deadline:
        await asyncio.sleep(0.05)
    runtime.stop()

    assert await asyncio.wait_for(task, timeout=0.5) == 0
    alert_lines = [line for line in stream.getvalue().splitlines() if "ALERT:" in line]
    assert len(alert_lines) == 1
    assert "rain likely" in alert_lines[0]
    assert client.price_calls[:4] == ["rain-yes", "snow-yes"] * 2


class BlockingClient(FakeClient):
    """Hang on resolution until cancelled."""

    def __init__(self) -> None:
        super().__init__(markets={}, prices={})
        self.resolving = asyncio.Event()

    async def resolve_by_slug(self, slug: str) -> MarketInfo:
        self.resolving.set()
        await asyncio.sleep(60)
        raise AssertionError("resolution should have been cancelled")


@pytest.mark.asyncio
async def test_sigterm_during_resolution_exits_cleanly(config_path: Path) -> None:
    client = BlockingClient()
    runtime, stream = make_runtime(config_path, client, once=True)

    task = asyncio.create_task(runtime.run())
    await asyncio.wait_for(client.resolving.wait(), timeout=1.0)
    assert signal.getsignal(signal.SIGTERM) not in (signal.SIG_DFL, signal.SIG_IGN, None)
    os.kill(os.getpid(), signal.SIGTERM)

    assert await asyncio.wait_for(task, timeout=1.0) == 0
    output = stream.getvalue()
    assert "Shutting down..." in output
    assert "Prices:" not in output
