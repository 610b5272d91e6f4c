"""
REST API for the Bagged Fees service using FastAPI.

Endpoints
---------
GET /health                  - Health check
GET /api/waterfall-claims    - Waterfall estimates (creator / token / all creators)
GET /api/claimed-percentage  - Single-token claimed percentage (quick or full)
GET /api/analyze-fees        - Per-creator withdrawal breakdown from tx history
GET /api/tokens              - Catalog tokens with lifetime fees in SOL and USD
GET /api/token-claimed-fees  - Claimed fees reported by the Bagscreener mirror
GET /api/token-info          - Token name / symbol / price lookup
GET /api/fee-share           - Fee-share wallets for one token or the whole catalog

Errors are returned as ``{"success": false, "error": "..."}``.
"""

from __future__ import annotations

import asyncio
import logging
import math
import re
import time
from contextlib import asynccontextmanager
from typing import Any, Optional

import sentry_sdk
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from config import (
    ANALYSIS_TIMEOUT_SECONDS,
    API_HOST,
    API_PORT,
    CORS_ORIGINS,
    DEFAULT_MAX_TRANSACTIONS,
    MAX_TRANSACTIONS_CAP,
    RATE_LIMIT_ANALYSIS,
    RATE_LIMIT_LIGHT,
    SENTRY_DSN,
    SENTRY_ENVIRONMENT,
    SENTRY_TRACES_SAMPLE_RATE,
    SOLANA_RPC_ENDPOINT,
)
from .claimed_percentage import (
    calculate_token_claimed_percentage,
    calculate_token_claimed_percentage_quick,
)
from .data_sources._clients import (
    cache,
    close_clients,
    get_aggregator,
    get_bags_client,
    get_catalog,
    get_resolver,
    get_rpc_client,
    init_clients,
)
from .fee_share_tracker import get_token_fee_share_wallets, track_fee_share_wallets
from .logging_config import generate_request_id, request_id_ctx, setup_logging
from .models import (
    ApiResponse,
    ErrorResponse,
    FeeOverview,
    TokenClaimedData,
    TokenClaimedFees,
    TokenFeeAnalysis,
    TokenFeeShareData,
)
from .rate_limit import get_all_statuses as rate_limiter_statuses
from .withdrawal_analyzer import analyze_token_fee_claims

# Initialise structured logging early
setup_logging()
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Sentry – initialise before anything else so startup errors are captured
# ---------------------------------------------------------------------------
if SENTRY_DSN:
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        environment=SENTRY_ENVIRONMENT,
        traces_sample_rate=SENTRY_TRACES_SAMPLE_RATE,
        send_default_pii=False,
        # Don't capture 4xx client errors as Sentry events
        before_send=lambda event, hint: (
            None
            if (hint.get("exc_info") and
                isinstance(hint["exc_info"][1], StarletteHTTPException) and
                (hint["exc_info"][1].status_code or 500) < 500)
            else event
        ),
    )
    logger.info("Sentry initialised (env=%s)", SENTRY_ENVIRONMENT)
else:
    logger.info("SENTRY_DSN not set – error tracking disabled")

_start_time = time.monotonic()

# Solana addresses are 32-44 base58 chars
_BASE58_RE = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")

_WATERFALL_ACTIONS = ("creator-waterfall", "token-waterfall", "all-creators-waterfall")
_FEE_SHARE_ACTIONS = ("single-token", "all-tokens")

# Documents the error envelope in the OpenAPI schema
_ERROR_RESPONSES: dict = {
    400: {"model": ErrorResponse, "description": "Missing or invalid parameters"},
    500: {"model": ErrorResponse, "description": "Internal error"},
    504: {"model": ErrorResponse, "description": "Upstream analysis timed out"},
}

# ---------------------------------------------------------------------------
# Rate limiter
# ---------------------------------------------------------------------------
limiter = Limiter(key_func=get_remote_address)


# ---------------------------------------------------------------------------
# Lifespan: startup / shutdown
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(application: FastAPI):
    """Initialise shared clients on startup, close on shutdown."""
    if not SOLANA_RPC_ENDPOINT or not SOLANA_RPC_ENDPOINT.startswith("http"):
        logger.error("SOLANA_RPC_ENDPOINT is not a valid URL: %s", SOLANA_RPC_ENDPOINT)
        raise RuntimeError("Invalid SOLANA_RPC_ENDPOINT – must be an HTTP(S) URL")
    logger.info("Starting up – initialising clients …")
    await init_clients()
    yield
    logger.info("Shutting down – closing clients …")
    await close_clients()


app = FastAPI(
    title="Bagged Fees API",
    description="Estimate how much of their Bags.fm creator fees each creator has withdrawn.",
    version="1.0.0",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["Content-Type", "Accept"],
)


# ---------------------------------------------------------------------------
# Error envelope
# ---------------------------------------------------------------------------
def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


@app.exception_handler(StarletteHTTPException)
async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ())[1:]) or 'request'}: {err.get('msg')}"
        for err in exc.errors()
    )
    return _error(400, f"Invalid parameters – {problems}")


@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s", request.url.path)
    return _error(500, "Internal server error")


# ---------------------------------------------------------------------------
# Request-ID & access-log middleware
# ---------------------------------------------------------------------------
class RequestIdMiddleware(BaseHTTPMiddleware):
    """Attach a unique request ID to every request for tracing."""

    async def dispatch(self, request: Request, call_next):
        rid = generate_request_id()
        request_id_ctx.set(rid)
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = rid
        logger.info(
            "%s %s -> %s (%.1f ms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        return response


app.add_middleware(RequestIdMiddleware)


def _require_address(value: Optional[str], name: str) -> str:
    if not value:
        raise HTTPException(status_code=400, detail=f"Missing required parameter: {name}")
    if not _BASE58_RE.match(value):
        raise HTTPException(
            status_code=400,
            detail=f"Invalid {name}. Expected 32-44 base58 characters.",
        )
    return value


def _require_fees(value: float, detail: str) -> float:
    # inf / nan would poison the percentages and cannot be rendered as JSON
    if not math.isfinite(value) or value <= 0:
        raise HTTPException(status_code=400, detail=detail)
    return value


async def _with_timeout(coro: Any, what: str) -> Any:
    try:
        return await asyncio.wait_for(coro, timeout=ANALYSIS_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        raise HTTPException(
            status_code=504,
            detail=f"{what} timed out after {ANALYSIS_TIMEOUT_SECONDS}s. Try again later.",
        )
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception("%s failed", what)
        raise HTTPException(status_code=500, detail="Internal server error") from exc


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------


@app.get("/", tags=["system"], include_in_schema=False)
async def root():
    """Redirect to Swagger UI."""
    return RedirectResponse(url="/docs")


@app.get("/health", tags=["system"])
async def health() -> dict:
    """Health check including uptime, upstream pacing and cache stats."""
    return {
        "status": "ok",
        "uptime_seconds": round(time.monotonic() - _start_time, 1),
        "cache": {"backend": type(cache).__name__, "entries": len(cache)},
        "rate_limiters": rate_limiter_statuses(),
    }


@app.get("/api/waterfall-claims", tags=["waterfall"], responses=_ERROR_RESPONSES)
@limiter.limit(RATE_LIMIT_ANALYSIS)
async def waterfall_claims(
    request: Request,
    action: Optional[str] = Query(None, description=" | ".join(_WATERFALL_ACTIONS)),
    wallet_address: Optional[str] = Query(None, alias="walletAddress"),
    token_address: Optional[str] = Query(None, alias="tokenAddress"),
    token_symbol: str = Query("Unknown", alias="tokenSymbol"),
    total_fees_sol: float = Query(0.0, alias="totalFeesSOL", ge=0.0),
):
    """Waterfall-allocated claim estimates for a creator, a token, or everyone."""
    if not math.isfinite(total_fees_sol):
        raise HTTPException(status_code=400, detail="Invalid totalFeesSOL parameter")
    if action == "creator-waterfall" and wallet_address:
        _require_address(wallet_address, "walletAddress")
        return await _with_timeout(
            get_aggregator().creator_waterfall(wallet_address), "Creator waterfall"
        )
    if action == "token-waterfall" and token_address:
        _require_address(token_address, "tokenAddress")
        return await _with_timeout(
            get_aggregator().token_waterfall(token_address, token_symbol, total_fees_sol),
            "Token waterfall",
        )
    if action == "all-creators-waterfall":
        return await _with_timeout(
            get_aggregator().all_creators_waterfall(), "All-creators waterfall"
        )
    raise HTTPException(
        status_code=400,
        detail="Invalid action. Use: creator-waterfall, token-waterfall, or all-creators-waterfall",
    )


@app.get(
    "/api/claimed-percentage",
    response_model=ApiResponse[TokenClaimedData],
    tags=["claims"],
    responses=_ERROR_RESPONSES,
)
@limiter.limit(RATE_LIMIT_ANALYSIS)
async def claimed_percentage(
    request: Request,
    token_address: Optional[str] = Query(None, alias="tokenAddress"),
    token_symbol: str = Query("TOKEN", alias="tokenSymbol"),
    total_fees_sol: float = Query(0.0, alias="totalFeesSOL"),
    quick: bool = Query(False),
) -> ApiResponse[TokenClaimedData]:
    """Estimate the share of a token's creator earnings already withdrawn."""
    _require_address(token_address, "tokenAddress")
    _require_fees(total_fees_sol, "Missing or invalid totalFeesSOL parameter")

    calculate = (
        calculate_token_claimed_percentage_quick if quick else calculate_token_claimed_percentage
    )
    result: TokenClaimedData = await _with_timeout(
        calculate(
            token_address, token_symbol, total_fees_sol,
            bags=get_bags_client(), resolver=get_resolver(), rpc=get_rpc_client(),
        ),
        "Claimed percentage",
    )
    return ApiResponse(
        data=result,
        message=f"Calculated claimed percentage for {token_symbol}: {result.claimed_percentage:.1f}%",
    )


@app.get(
    "/api/analyze-fees",
    response_model=ApiResponse[TokenFeeAnalysis],
    tags=["claims"],
    responses=_ERROR_RESPONSES,
)
@limiter.limit(RATE_LIMIT_ANALYSIS)
async def analyze_fees(
    request: Request,
    token_address: Optional[str] = Query(None, alias="tokenAddress"),
    token_symbol: str = Query("TOKEN", alias="tokenSymbol"),
    token_name: str = Query("Token", alias="tokenName"),
    total_fees_sol: float = Query(0.0, alias="totalFeesSOL"),
    max_transactions: int = Query(DEFAULT_MAX_TRANSACTIONS, alias="maxTransactions", ge=1),
) -> ApiResponse[TokenFeeAnalysis]:
    """Per-creator withdrawal breakdown from transaction history."""
    _require_address(token_address, "tokenAddress")
    _require_fees(
        total_fees_sol,
        "Missing or invalid totalFeesSOL parameter - please provide the total "
        "fees earned by this token in SOL",
    )
    max_transactions = min(max_transactions, MAX_TRANSACTIONS_CAP)

    async def _run() -> ApiResponse[TokenFeeAnalysis]:
        fee_share = await get_token_fee_share_wallets(
            token_address, token_symbol, token_name,
            bags=get_bags_client(), resolver=get_resolver(),
        )
        if not fee_share.fee_share_wallets:
            return ApiResponse(
                data=TokenFeeAnalysis(
                    token_address=token_address,
                    token_symbol=fee_share.token_symbol,
                    token_name=fee_share.token_name,
                    total_fees_earned=total_fees_sol,
                ),
                message="No fee share wallets found for this token",
            )
        analysis = await analyze_token_fee_claims(
            get_rpc_client(), fee_share, total_fees_sol, max_transactions
        )
        return ApiResponse(
            data=analysis,
            message=f"Analyzed {analysis.total_creators} creators for {analysis.token_symbol}",
        )

    return await _with_timeout(_run(), "Fee analysis")


@app.get(
    "/api/tokens",
    response_model=ApiResponse[FeeOverview],
    tags=["tokens"],
    responses=_ERROR_RESPONSES,
)
@limiter.limit(RATE_LIMIT_LIGHT)
async def tokens(request: Request) -> ApiResponse[FeeOverview]:
    """Catalog tokens with lifetime fees, valued at the current SOL price."""
    overview: FeeOverview = await _with_timeout(get_catalog().get_fee_overview(), "Token overview")
    return ApiResponse(
        data=overview,
        message=f"{len(overview.tokens)} tokens with lifetime fees",
    )


@app.get(
    "/api/token-claimed-fees",
    response_model=ApiResponse[TokenClaimedFees],
    tags=["tokens"],
    responses={**_ERROR_RESPONSES, 404: {"model": ErrorResponse, "description": "Unknown token"}},
)
@limiter.limit(RATE_LIMIT_LIGHT)
async def token_claimed_fees(
    request: Request,
    token_address: Optional[str] = Query(None, alias="tokenAddress"),
) -> ApiResponse[TokenClaimedFees]:
    """Lifetime and claimed fees as reported by the Bagscreener mirror."""
    _require_address(token_address, "tokenAddress")
    fees = await _with_timeout(
        get_catalog().get_token_claimed_fees(token_address), "Claimed fees lookup"
    )
    if fees is None:
        raise HTTPException(status_code=404, detail="Token not found in Bagscreener data")
    return ApiResponse(data=fees)


@app.get(
    "/api/token-info",
    response_model=ApiResponse[dict],
    tags=["tokens"],
    responses=_ERROR_RESPONSES,
)
@limiter.limit(RATE_LIMIT_LIGHT)
async def token_info(
    request: Request,
    token_address: Optional[str] = Query(None, alias="tokenAddress"),
) -> ApiResponse[dict]:
    """Token name, symbol and price (Bags, then Jupiter, then placeholders)."""
    _require_address(token_address, "tokenAddress")
    info = await _with_timeout(get_catalog().get_token_info(token_address), "Token info")
    return ApiResponse(data=info)


@app.get("/api/fee-share", tags=["tokens"], responses=_ERROR_RESPONSES)
@limiter.limit(RATE_LIMIT_ANALYSIS)
async def fee_share(
    request: Request,
    action: Optional[str] = Query(None, description=" | ".join(_FEE_SHARE_ACTIONS)),
    token_address: Optional[str] = Query(None, alias="tokenAddress"),
    token_symbol: str = Query("", alias="tokenSymbol"),
    token_name: str = Query("", alias="tokenName"),
):
    """Royalty-bearing fee-share wallets for one token or every catalog token."""
    if action == "single-token":
        _require_address(token_address, "tokenAddress")
        data: TokenFeeShareData = await _with_timeout(
            get_token_fee_share_wallets(
                token_address, token_symbol, token_name,
                bags=get_bags_client(), resolver=get_resolver(),
            ),
            "Fee-share lookup",
        )
        return ApiResponse(
            data=data,
            message=f"Found {len(data.fee_share_wallets)} fee share wallets for {data.token_symbol}",
        )
    if action == "all-tokens":
        async def _track() -> list[TokenFeeShareData]:
            tokens = await get_catalog().get_tokens()
            return await track_fee_share_wallets(
                tokens, bags=get_bags_client(), resolver=get_resolver()
            )

        results = await _with_timeout(_track(), "Fee-share tracking")
        return ApiResponse(
            data=results,
            message=f"Found fee share wallets for {len(results)} tokens",
        )
    raise HTTPException(
        status_code=400,
        detail="Invalid action. Use: single-token (with tokenAddress) or all-tokens",
    )


def main() -> None:
    import uvicorn

    uvicorn.run("bagged_fees.api:app", host=API_HOST, port=API_PORT)


if __name__ == "__main__":
    main()
