"""Polymarket Gamma/CLOB REST client used to resolve markets and read prices."""

from __future__ import annotations

import json
import logging
from types import TracebackType
from typing import Any, Mapping, Optional, Type

import aiohttp

from common.models import MarketInfo, TokenInfo

logger = logging.getLogger(__name__)

CLOB_BASE_URL = "https://clob.polymarket.com"
GAMMA_BASE_URL = "https://gamma-api.polymarket.com"
DEFAULT_TIMEOUT_SECONDS = 10.0


class MarketDataError(Exception):
    """Raised when the market API returns data that cannot be used."""


class MarketNotFoundError(MarketDataError):
    """Raised when a slug or condition id does not match any market."""


def decode_string_list(value: object) -> list[str]:
    """Decode a field that is either a JSON array or a string holding one.

    Gamma returns ``clobTokenIds`` and ``outcomes`` as ``'["a", "b"]'`` on
    some endpoints and as real arrays on others.
    """

    if value is None:
        return []
    if isinstance(value, str):
        if not value.strip():
            return []
        try:
            value = json.loads(value)
        except json.JSONDecodeError as exc:
            raise MarketDataError(f"Malformed list field: {value!r}") from exc
    if isinstance(value, list):
        return [str(item) if item is not None else "" for item in value]
    raise MarketDataError(f"Expected a list, got {type(value).__name__}")


def _best_price(levels: object, pick: Any) -> Optional[float]:
    if not isinstance(levels, list) or not levels:
        return None
    prices: list[float] = []
    for level in levels:
        if not isinstance(level, Mapping) or level.get("price") is None:
            continue
        try:
            prices.append(float(level["price"]))
        except (TypeError, ValueError) as exc:
            raise MarketDataError(f"Unparseable book price: {level['price']!r}") from exc
    if not prices:
        return None
    return pick(prices)


def mid_price_from_book(book: Mapping[str, Any]) -> Optional[float]:
    """Return the mid of best bid and best ask, or the only side present."""

    best_bid = _best_price(book.get("bids"), max)
    best_ask = _best_price(book.get("asks"), min)

    if best_bid is not None and best_ask is not None:
        return (best_bid + best_ask) / 2
    if best_bid is not None:
        return best_bid
    return best_ask


def market_info_from_gamma(market: Mapping[str, Any], slug: str) -> MarketInfo:
    token_ids = decode_string_list(market.get("clobTokenIds"))
    outcomes = decode_string_list(market.get("outcomes"))
    tokens = [
        TokenInfo(token_id=token_id, outcome=outcome)
        for token_id, outcome in zip(token_ids, outcomes)
    ]
    return MarketInfo(
        condition_id=market.get("conditionId") or market.get("condition_id"),
        question=market.get("question") or slug,
        slug=slug,
        tokens=tokens,
    )


def market_info_from_clob(market: Mapping[str, Any], condition_id: str) -> MarketInfo:
    raw_tokens = market.get("tokens") or []
    if not isinstance(raw_tokens, list):
        raise MarketDataError(
            f"Expected a token list for condition_id {condition_id}, "
            f"got {type(raw_tokens).__name__}"
        )
    tokens = [
        TokenInfo(
            token_id=str(token.get("token_id") or ""),
            outcome=str(token.get("outcome") or "Unknown"),
        )
        for token in raw_tokens
        if isinstance(token, Mapping)
    ]
    return MarketInfo(
        condition_id=condition_id,
        question=market.get("question") or condition_id,
        tokens=tokens,
    )


class PolymarketClient:
    """Thin async wrapper over the public Gamma and CLOB endpoints.

    A session passed in by the caller is reused and left open; otherwise the
    client owns one and closes it in :meth:`close`.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        *,
        clob_base_url: str = CLOB_BASE_URL,
        gamma_base_url: str = GAMMA_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._session = session
        self._owns_session = session is None
        self.clob_base_url = clob_base_url.rstrip("/")
        self.gamma_base_url = gamma_base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def __aenter__(self) -> "PolymarketClient":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def _get_json(self, url: str, params: Mapping[str, str] | None = None) -> Any:
        session = self._get_session()
        async with session.get(url, params=params, timeout=self.timeout) as resp:
            if resp.status == 404:
                raise MarketNotFoundError(f"Not found: {url}")
            resp.raise_for_status()
            text = await resp.text()
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise MarketDataError(f"Invalid JSON from {url}") from exc

    async def resolve_by_slug(self, slug: str) -> MarketInfo:
        """Resolve a market slug to its outcome tokens via the Gamma API."""

        payload = await self._get_json(f"{self.gamma_base_url}/markets", {"slug": slug})
        if not isinstance(payload, list) or not payload or not isinstance(payload[0], Mapping):
            raise MarketNotFoundError(f"No market found for slug: {slug}")
        info = market_info_from_gamma(payload[0], slug)
        logger.debug("Resolved slug %s to %d tokens", slug, len(info.tokens))
        return info

    async def resolve_by_condition_id(self, condition_id: str) -> MarketInfo:
        """Resolve a market by condition id via the CLOB API."""

        try:
            payload = await self._get_json(f"{self.clob_base_url}/markets/{condition_id}")
        except MarketNotFoundError:
            raise MarketNotFoundError(
                f"No market found for condition_id: {condition_id}"
            ) from None
        if not isinstance(payload, Mapping):
            raise MarketNotFoundError(f"No market found for condition_id: {condition_id}")
        info = market_info_from_clob(payload, condition_id)
        logger.debug("Resolved condition %s to %d tokens", condition_id, len(info.tokens))
        return info

    async def get_mid_price(self, token_id: str) -> Optional[float]:
        """Fetch the order book for ``token_id`` and return its mid price.

        Returns ``None`` when the book has neither bids nor asks.
        """

        payload = await self._get_json(f"{self.clob_base_url}/book", {"token_id": token_id})
        if not isinstance(payload, Mapping):
            return None
        return mid_price_from_book(payload)


__all__ = [
    "CLOB_BASE_URL",
    "DEFAULT_TIMEOUT_SECONDS",
    "GAMMA_BASE_URL",
    "MarketDataError",
    "MarketNotFoundError",
    "PolymarketClient",
    "decode_string_list",
    "market_info_from_clob",
    "market_info_from_gamma",
    "mid_price_from_book",
]
