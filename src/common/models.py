"""Shared data models and enums used across the project."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class AlertDirection(str, Enum):
    """Side of the threshold on which an alert counts as crossed."""

    ABOVE = "above"
    BELOW = "below"


class TokenInfo(BaseModel):
    """A tradable outcome token of a market."""

    token_id: str = Field(..., description="CLOB token identifier")
    outcome: str = Field(..., description="Outcome label, e.g. Yes or No")


class MarketInfo(BaseModel):
    """Market metadata resolved from a slug or a condition id."""

    condition_id: Optional[str] = Field(
        None, description="On-chain condition identifier of the market"
    )
    question: str = Field(..., description="Human readable market question")
    slug: Optional[str] = Field(None, description="Gamma slug when resolved by slug")
    tokens: list[TokenInfo] = Field(
        default_factory=list, description="Outcome tokens in API order"
    )


__all__ = ["AlertDirection", "MarketInfo", "TokenInfo"]
