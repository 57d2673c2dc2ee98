"""Shared data models for the Solana collaborators.

Pydantic-based models with validation for the quote, pair and chain responses
the ladder engine consumes.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SwapQuote(BaseModel):
    """Jupiter quote response.

    ``out_amount`` is the expected output and ``worst_case_out_amount`` the
    minimum output after the quote's own slippage tolerance, both in raw units
    of the output mint.
    """

    model_config = ConfigDict(
        frozen=True, populate_by_name=True, arbitrary_types_allowed=True
    )

    input_mint: str = Field(..., alias="inputMint")
    output_mint: str = Field(..., alias="outputMint")
    in_amount: int = Field(..., alias="inAmount", ge=0)
    out_amount: int = Field(..., alias="outAmount", ge=0)
    worst_case_out_amount: int = Field(..., alias="otherAmountThreshold", ge=0)
    price_impact_pct: Decimal = Field(Decimal("0"), alias="priceImpactPct")
    slippage_bps: int = Field(0, alias="slippageBps", ge=0)
    raw_payload: Mapping[str, Any] = Field(default_factory=dict)

    @field_validator("in_amount", "out_amount", "worst_case_out_amount", mode="before")
    @classmethod
    def validate_raw_amounts(cls, v: Any) -> int:
        """Raw amounts arrive as decimal strings; keep them as exact ints."""
        try:
            return int(str(v))
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid raw amount: {v}") from e

    @field_validator("price_impact_pct", mode="before")
    @classmethod
    def validate_price_impact(cls, v: Any) -> Decimal:
        if v is None or v == "":
            return Decimal("0")
        try:
            return Decimal(str(v))
        except (InvalidOperation, ValueError) as e:
            raise ValueError(f"Invalid price impact: {v}") from e

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "SwapQuote":
        return cls.model_validate({**payload, "raw_payload": dict(payload)})


class PairInfo(BaseModel):
    """Pair metadata and spot price from the pair lookup service."""

    model_config = ConfigDict(frozen=True)

    pair_address: str
    base_symbol: str
    quote_symbol: str
    price_quote: Decimal | None = None

    @field_validator("price_quote", mode="before")
    @classmethod
    def validate_price(cls, v: Any) -> Decimal | None:
        if v is None or v == "":
            return None
        try:
            price = Decimal(str(v))
        except (InvalidOperation, ValueError) as e:
            raise ValueError(f"Invalid price: {v}") from e
        if price <= 0:
            raise ValueError("Price must be positive")
        return price

    @property
    def label(self) -> str:
        return f"{self.base_symbol}/{self.quote_symbol}"


class SignatureStatus(BaseModel):
    """Status of a submitted transaction signature."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    slot: int | None = None
    confirmation_status: str | None = Field(None, alias="confirmationStatus")
    err: Any = None

    @property
    def failed(self) -> bool:
        return self.err is not None

    @property
    def settled(self) -> bool:
        return self.confirmation_status in {"confirmed", "finalized"}


class SignatureInfo(BaseModel):
    """Entry from ``getSignaturesForAddress``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    signature: str
    block_time: int | None = Field(None, alias="blockTime")
    err: Any = None


class TokenTransfer(BaseModel):
    """Parsed spl-token transfer instruction."""

    model_config = ConfigDict(frozen=True)

    source: str | None = None
    destination: str | None = None
    authority: str | None = None
    mint: str | None = None
    amount: str | None = None
