"""Async runtime harness that resolves watches and polls their prices."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from contextlib import suppress
from pathlib import Path
from typing import Iterable, Optional, Protocol, Sequence

import aiohttp
from dotenv import load_dotenv

from alerts import ConsoleAlertWriter, build_banner, build_snapshot
from common import (
    ConfigError,
    MarketInfo,
    TokenInfo,
    WatchConfig,
    WatchDefinition,
    level_from_name,
    load_watch_config,
    setup_logging,
)
from markets import MarketDataError, PolymarketClient
from rules import Watch

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "watches.yaml"
TOKEN_PREVIEW_LENGTH = 12

# Failures that stay local to one watch.
FETCH_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, MarketDataError, ValueError)


class MarketDataClient(Protocol):
    async def resolve_by_slug(self, slug: str) -> MarketInfo: ...

    async def resolve_by_condition_id(self, condition_id: str) -> MarketInfo: ...

    async def get_mid_price(self, token_id: str) -> Optional[float]: ...


def select_token(tokens: Sequence[TokenInfo]) -> TokenInfo | None:
    """Prefer the ``Yes`` outcome, otherwise the first token listed."""

    for token in tokens:
        if token.outcome.lower() == "yes":
            return token
    return tokens[0] if tokens else None


def describe_error(exc: BaseException) -> str:
    text = str(exc)
    if text:
        return text
    if isinstance(exc, asyncio.TimeoutError):
        return "request timed out"
    return type(exc).__name__


class WatcherRuntime:
    """Coordinate config loading, market resolution, and the poll loop."""

    def __init__(
        self,
        config_path: Path,
        *,
        once: bool = False,
        client: MarketDataClient | None = None,
        writer: ConsoleAlertWriter | None = None,
    ) -> None:
        self.config_path = config_path
        self.once = once
        self.writer = writer or ConsoleAlertWriter()
        self._client = client
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[int] | None = None

    async def run(self) -> int:
        """Run until stopped and return the process exit code."""

        load_dotenv()
        try:
            config = load_watch_config(self.config_path)
        except ConfigError as exc:
            print(exc, file=sys.stderr)
            return 1

        setup_logging(level_from_name(config.logging.level), config.logging.file)
        logger.info("Starting watcher runtime", extra={"config": str(self.config_path)})

        if self._client is not None:
            return await self._run_with_client(config, self._client)

        async with PolymarketClient() as client:
            return await self._run_with_client(config, client)

    async def _run_with_client(self, config: WatchConfig, client: MarketDataClient) -> int:
        loop = asyncio.get_running_loop()
        installed: list[signal.Signals] = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            with suppress(NotImplementedError, RuntimeError):
                loop.add_signal_handler(sig, self._on_signal)
                installed.append(sig)

        self._task = asyncio.create_task(self._watch(config, client), name="watcher")
        try:
            return await self._task
        except asyncio.CancelledError:
            if not self._stop_event.is_set():
                raise
            return 0
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)
            self._task = None
            logger.info("Watcher runtime stopped")

    async def _watch(self, config: WatchConfig, client: MarketDataClient) -> int:
        self.writer.write(build_banner(config.poll_interval, len(config.watches)))

        watches = await self.resolve_watches(config.watches, client)
        if not watches:
            print("No markets could be resolved. Check your config.", file=sys.stderr)
            return 1

        self.writer.write(
            f"\nWatching {len(watches)} market(s). Press Ctrl+C to stop.\n"
        )
        await self.print_status(watches, client)

        if self.once:
            await self.poll_once(watches, client)
        else:
            await self._poll_forever(watches, client, config.poll_interval)
        return 0

    async def resolve_watches(
        self, definitions: Iterable[WatchDefinition], client: MarketDataClient
    ) -> list[Watch]:
        """Resolve each definition in order, dropping the ones that fail."""

        self.writer.write("Resolving markets...")
        watches: list[Watch] = []
        for definition in definitions:
            name = definition.name or definition.identifier
            prefix = f"  Resolving '{name}' ({definition.identifier})... "
            try:
                if definition.condition_id:
                    info = await client.resolve_by_condition_id(definition.condition_id)
                else:
                    info = await client.resolve_by_slug(definition.identifier)
            except FETCH_ERRORS as exc:
                reason = describe_error(exc)
                logger.warning("Could not resolve %s: %s", name, reason)
                self.writer.write(f"{prefix}FAILED: {reason}")
                continue

            token = select_token(info.tokens)
            if token is None:
                logger.warning("Dropping %s: market has no tokens", name)
                self.writer.write(f"{prefix}FAILED: No tokens found")
                continue

            watches.append(
                Watch.from_definition(
                    definition,
                    token_id=token.token_id,
                    question=info.question or name,
                    outcome=token.outcome,
                )
            )
            preview = token.token_id[:TOKEN_PREVIEW_LENGTH]
            self.writer.write(f"{prefix}OK (token: {preview}...)")
        return watches

    async def print_status(self, watches: Sequence[Watch], client: MarketDataClient) -> None:
        """Print current prices without evaluating any alert."""

        entries: list[tuple[str, Optional[float], Optional[str]]] = []
        for watch in watches:
            try:
                price = await client.get_mid_price(watch.token_id)
            except FETCH_ERRORS as exc:
                entries.append((watch.name, None, describe_error(exc)))
                continue
            entries.append((watch.name, price, None))
        self.writer.write(build_snapshot(entries))

    async def poll_once(self, watches: Sequence[Watch], client: MarketDataClient) -> None:
        """Fetch each watch's price and run its alerts; failures stay per watch."""

        for watch in watches:
            try:
                price = await client.get_mid_price(watch.token_id)
            except FETCH_ERRORS as exc:
                reason = describe_error(exc)
                logger.warning("Error fetching %s: %s", watch.name, reason)
                self.writer.handle_fetch_error(watch, reason)
                continue

            if price is None:
                logger.debug("No book data for %s", watch.name)
                continue

            for alert, message in watch.evaluate(price):
                self.writer.handle_alert(watch, price, alert, message)

    async def _poll_forever(
        self, watches: Sequence[Watch], client: MarketDataClient, interval: float
    ) -> None:
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                await self.poll_once(watches, client)

    def _on_signal(self) -> None:
        self.writer.write("\nShutting down...")
        self.stop()

    def stop(self) -> None:
        """Request shutdown; in-flight resolution or polling is abandoned."""

        self._stop_event.set()
        if self._task is not None and not self._task.done():
            self._task.cancel()


async def run_watcher(config_path: str, once: bool = False) -> int:
    runtime = WatcherRuntime(Path(config_path), once=once)
    return await runtime.run()


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Watch Polymarket prices and alert on threshold crossings"
    )
    parser.add_argument(
        "-c",
        "--config",
        default=DEFAULT_CONFIG_PATH,
        help="Path to YAML watch list",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single poll cycle and exit",
    )
    return parser.parse_args(list(argv) if argv is not None else None)


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)
    try:
        code = asyncio.run(run_watcher(args.config, once=args.once))
    except KeyboardInterrupt:  # pragma: no cover - platforms without signal handlers
        print("\nShutting down...")
        code = 0
    sys.exit(code)


if __name__ == "__main__":  # pragma: no cover - CLI execution path
    main()
