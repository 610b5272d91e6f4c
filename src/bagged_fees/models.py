"""
Pydantic models used throughout the Bagged Fees service.

Python attributes are snake_case; the JSON wire format is camelCase so the
dashboard front-end can consume responses unchanged.
"""

from __future__ import annotations

from datetime import datetime
from typing import Generic, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

from .constants import BPS_DENOMINATOR

T = TypeVar("T")


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _FrozenCamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ---------------------------------------------------------------------------
# Bags creators / fee-share wallets
# ---------------------------------------------------------------------------
class Creator(_CamelModel):
    """One entry of the Bags ``token-launch/creator/v2`` response."""

    username: Optional[str] = None
    pfp: Optional[str] = None
    twitter_username: Optional[str] = None
    royalty_bps: int = Field(0, ge=0, le=BPS_DENOMINATOR)
    is_creator: bool = False
    wallet: Optional[str] = None

    @property
    def royalty_fraction(self) -> float:
        return self.royalty_bps / BPS_DENOMINATOR


class FeeShareWallet(_FrozenCamelModel):
    """A creator's claim share on one token, resolved to a payout wallet."""

    twitter_handle: str
    wallet_address: str
    token_address: str
    token_symbol: str = ""
    royalty_bps: int = Field(..., ge=0, le=BPS_DENOMINATOR)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def royalty_percentage(self) -> float:
        return self.royalty_bps / 100


class TokenFeeShareData(_CamelModel):
    """Every fee-share wallet with a non-zero royalty on a token."""

    token_address: str
    token_symbol: str = ""
    token_name: str = ""
    fee_share_wallets: list[FeeShareWallet] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_wallets(self) -> int:
        return len(self.fee_share_wallets)


# ---------------------------------------------------------------------------
# Token catalog
# ---------------------------------------------------------------------------
class CatalogToken(_CamelModel):
    """A Bags-launched token with its lifetime fee figure (SOL)."""

    token_address: str
    token_symbol: str = ""
    token_name: str = ""
    image_url: Optional[str] = None
    lifetime_fees_sol: float = Field(0.0, alias="lifetimeFeesSOL", ge=0.0)
    claimed_fees_sol: Optional[float] = Field(None, alias="claimedFeesSOL")
    price_usd: Optional[float] = None
    market_cap_usd: Optional[float] = None


class TokenFeeOverview(CatalogToken):
    lifetime_fees_usd: float = Field(0.0, alias="lifetimeFeesUSD")


class FeeOverview(_CamelModel):
    """Catalog tokens with fees, valued at the current SOL price."""

    sol_price_usd: float = Field(0.0, alias="solPriceUSD")
    total_lifetime_fees_sol: float = Field(0.0, alias="totalLifetimeFeesSOL")
    tokens: list[TokenFeeOverview] = Field(default_factory=list)


class TokenClaimedFees(_CamelModel):
    """Claimed-fee figures reported by the Bagscreener mirror."""

    lifetime_fees: float
    claimed_fees: float
    claimed_percentage: float = Field(..., ge=0.0, le=100.0)


# ---------------------------------------------------------------------------
# Waterfall estimation
# ---------------------------------------------------------------------------
class TokenEarning(_CamelModel):
    """What one wallet should have earned from one token (SOL)."""

    token_address: str
    token_symbol: str = ""
    calculated_earnings: float


class CreatorTokenEarning(_FrozenCamelModel):
    """Allocator output for one (wallet, token) earning bucket."""

    token_address: str
    token_symbol: str = ""
    wallet_address: str = ""
    twitter_handle: str = ""
    calculated_earnings: float
    claimed_amount: float
    claimed_percentage: float


class WaterfallClaimResult(_CamelModel):
    """Per-wallet estimate of withdrawn fees across all its tokens."""

    wallet_address: str
    twitter_handle: str
    total_calculated_earnings: float = 0.0
    total_withdrawn: float = 0.0
    current_balance: float = 0.0
    balance_known: bool = Field(
        True, description="False when the balance lookup failed and 0 was substituted"
    )
    tokens: list[CreatorTokenEarning] = Field(default_factory=list)


class TokenWaterfallResult(_CamelModel):
    """Slice of every creator's waterfall that belongs to one token."""

    token_address: str
    token_symbol: str
    total_fees_sol: float = Field(0.0, alias="totalFeesSOL")
    creators: list[CreatorTokenEarning] = Field(default_factory=list)
    total_calculated_earnings: float = 0.0
    total_claimed_amount: float = 0.0
    overall_claimed_percentage: float = 0.0


class AllCreatorsSummary(_CamelModel):
    total_calculated_earnings: float = 0.0
    total_withdrawn: float = 0.0
    total_current_balance: float = 0.0


class AllCreatorsWaterfallResult(_CamelModel):
    total_creators: int = 0
    creators: list[WaterfallClaimResult] = Field(default_factory=list)
    summary: AllCreatorsSummary = Field(default_factory=AllCreatorsSummary)


class TokenClaimedData(_CamelModel):
    """Estimated share of a token's creator earnings already withdrawn."""

    token_address: str
    token_symbol: str
    total_fees_sol: float = Field(0.0, alias="totalFeesSOL")
    total_calculated_earnings: float = 0.0
    total_withdrawals: float = 0.0
    claimed_percentage: float = 0.0
    remaining_sol: float = Field(0.0, alias="remainingSOL")
    is_calculating: bool = False
    balances_unknown: int = Field(0, description="Wallets whose balance lookup failed")
    error: Optional[str] = None


# ---------------------------------------------------------------------------
# Transaction-history estimation
# ---------------------------------------------------------------------------
class SolTransaction(_CamelModel):
    signature: str
    block_time: Optional[int] = None
    date: Optional[datetime] = None
    type: Literal["deposit", "withdrawal"]
    amount: float
    amount_lamports: int
    from_address: Optional[str] = None
    to_address: Optional[str] = None
    program_id: Optional[str] = None
    is_program_interaction: bool = False
    is_meteora_interaction: bool = False


class WalletAnalysis(_CamelModel):
    wallet_address: str
    twitter_handle: str
    token_address: str
    token_symbol: str
    royalty_percentage: float
    calculated_earnings: float
    total_withdrawals: float = 0.0
    remaining_balance: float = 0.0
    withdrawal_count: int = 0
    withdrawal_transactions: list[SolTransaction] = Field(default_factory=list)
    last_withdrawal: Optional[datetime] = None


class TokenFeeAnalysis(_CamelModel):
    token_address: str
    token_symbol: str
    token_name: str
    total_fees_earned: float
    total_creators: int = 0
    total_calculated_earnings: float = 0.0
    total_withdrawals_across_creators: float = 0.0
    total_remaining_across_creators: float = 0.0
    creator_analyses: list[WalletAnalysis] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Persistence / lookups
# ---------------------------------------------------------------------------
class WalletMapping(_CamelModel):
    """Cached twitter handle → fee-share wallet resolution."""

    twitter_handle: str
    wallet_address: str
    created_at: Optional[datetime] = None
    last_checked: datetime


class BalanceLookup(_FrozenCamelModel):
    """Result of a SOL balance query; ``ok`` separates failure from zero."""

    wallet_address: str
    balance_sol: float = Field(0.0, ge=0.0)
    ok: bool = True


# ---------------------------------------------------------------------------
# HTTP envelopes
# ---------------------------------------------------------------------------
class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    data: T
    message: str = ""


class ErrorResponse(BaseModel):
    success: Literal[False] = False
    error: str
