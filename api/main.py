"""
FastAPI wrapper for the quantcore library.

Provides HTTP endpoints for dividend option pricing, calibration, Bergomi
analytics and Monte Carlo pricing of coupon legs.
"""

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, ValidationError
from typing import Optional, Dict, List, Any, Literal, Union
from datetime import date
import logging

import numpy as np

# Import backend (installed as editable package)
from quantcore import __version__
from quantcore.config import DividendOptionConfig, MonteCarloConfig, RandomGeneratorType
from quantcore.core.time_measure import DateOrDuration, act365
from quantcore.errors import (
    ConvergenceError,
    InvalidArgument,
    MissingDataError,
    QuantError,
    RunCancelled,
    UnimplementedFeature,
)
from quantcore.market import FinancingId, Market, MarketDescription, PaymentInfo
from quantcore.models import (
    Bergomi2FModelDescription,
    Bergomi2FUtils,
    BlackScholesModelCalibDesc,
    BlackScholesModelDescription,
    BlackScholesWithDividendOption,
    Hw1ModelDescription,
    LocalVolModelDescription,
    build_model,
    calibrate,
)
from quantcore.pricers import McPricer
from quantcore.products import CouponLeg, fixed_coupon, spot_coupon

logger = logging.getLogger(__name__)


app = FastAPI(
    title="quantcore API",
    description="Model simulation, option pricing and calibration",
    version=__version__,
)

# CORS for UI
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:3001",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ==============================================================================
# Error mapping
# ==============================================================================

_ERROR_STATUS = (
    (InvalidArgument, 400),
    (MissingDataError, 404),
    (RunCancelled, 409),
    (ConvergenceError, 422),
    (UnimplementedFeature, 501),
)


def http_error(error: QuantError) -> HTTPException:
    """HTTP exception carrying the status of a library error."""
    for error_type, status in _ERROR_STATUS:
        if isinstance(error, error_type):
            return HTTPException(status_code=status, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))


# ==============================================================================
# Request/Response Models
# ==============================================================================

MODEL_DESCRIPTIONS = {
    "hw1": Hw1ModelDescription,
    "black_scholes": BlackScholesModelDescription,
    "bergomi2f": Bergomi2FModelDescription,
    "local_vol": LocalVolModelDescription,
}


class ModelRequest(BaseModel):
    """Model description tagged with its type."""
    type: Literal["hw1", "black_scholes", "bergomi2f", "local_vol"]
    parameters: Dict[str, Any]


class RunConfig(BaseModel):
    """Configuration for Monte Carlo simulation."""
    paths: int = Field(default=2 ** 14, ge=1, le=2 ** 22)
    random_generator: RandomGeneratorType = RandomGeneratorType.SOBOL
    seed: Optional[int] = Field(default=42)
    block_size: int = Field(default=2 ** 12, ge=1)


class OptionRequest(BaseModel):
    """Vanilla option on a market asset."""
    market: MarketDescription
    asset: str
    maturity: Union[date, str] = Field(..., description="Expiry date or tenor, e.g. '1Y'")
    strike: float = Field(..., gt=0)
    is_call: bool = Field(default=True, description="True for call, False for put")
    quadrature_points: int = Field(default=10, gt=0, le=200)


class DividendOptionPriceRequest(OptionRequest):
    """Request for dividend option pricing."""
    volatility: float = Field(..., ge=0, le=5.0)
    method: str = Field(default="quadrature", pattern="^(quadrature|lehman)$")


class DividendOptionPriceResponse(BaseModel):
    """Forward (undiscounted) option price."""
    price: float
    method: str
    maturity: float
    forward: float


class ImpliedVolRequest(OptionRequest):
    """Request for implied volatility calculation."""
    price: float = Field(..., gt=0, description="Forward option price")


class ImpliedVolResponse(BaseModel):
    """Response from implied volatility calculation."""
    implied_vol: float
    maturity: float


class CalibrateRequest(BaseModel):
    """Request for Black-Scholes calibration."""
    market: MarketDescription
    calibration: BlackScholesModelCalibDesc


class CalibrateResponse(BaseModel):
    """Calibrated model description."""
    model: Dict[str, Any]


class BergomiAnalyticsRequest(BaseModel):
    """Request for Bergomi 2F analytics."""
    market: MarketDescription
    model: Bergomi2FModelDescription
    starts: List[float] = Field(default_factory=list)
    ends: List[float] = Field(default_factory=list)
    skew_maturities: List[float] = Field(default_factory=list)


class BergomiAnalyticsResponse(BaseModel):
    """Forward variance swap vols, covariance and ATMF skews."""
    fwd_vol_instant_vol: List[float]
    fwd_vol_instant_covariance: List[List[float]]
    atmf_skew: List[float]


class CouponRequest(BaseModel):
    """A coupon: fixed amount or gearing times a spot fixing (optionally a call on it)."""
    payment_date: Union[date, str]
    kind: Literal["fixed", "spot"] = "fixed"
    amount: float = Field(default=1.0, description="Fixed amount, or gearing of the spot payoff")
    asset: Optional[str] = None
    fixing_date: Optional[Union[date, str]] = None
    strike: Optional[float] = Field(default=None, ge=0)


class McPriceRequest(BaseModel):
    """Request body for /mc/price endpoint."""
    market: MarketDescription
    model: ModelRequest
    coupons: List[CouponRequest] = Field(..., min_length=1)
    currency: str = Field(..., min_length=3, max_length=3)
    run_config: Optional[RunConfig] = None


class CouponPriceResponse(BaseModel):
    """Price of a single payment."""
    currency: str
    date: str
    financing: str
    price: float


class McPriceResponse(BaseModel):
    """Response from /mc/price endpoint."""
    price: float
    currency: str
    details: List[CouponPriceResponse]
    num_paths: int
    valuation_date: Optional[str]
    computation_time_ms: float


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str


# ==============================================================================
# Helpers
# ==============================================================================

def _dividend_option_pricer(request: OptionRequest, market: Market):
    """Pricer, model maturity and forward of an option request."""
    asset_market = market.asset_market_from_name(request.asset)
    time = act365(market.ref_date)
    cash_curve = market.discount_curve(FinancingId.risk_free(asset_market.asset.currency))
    config = DividendOptionConfig(quadrature_points=request.quadrature_points)
    pricer = BlackScholesWithDividendOption.build(
        asset_market.spot,
        asset_market.dividends,
        asset_market.asset_financing_curve(cash_curve),
        time,
        config.quadrature_points,
    )
    expiry = DateOrDuration(request.maturity).to_date(market.ref_date)
    forward = asset_market.forward(cash_curve).fwd(expiry)
    return pricer, float(time.t(expiry)), forward


def _build_leg(request: McPriceRequest, market: Market) -> CouponLeg:
    coupons = []
    for c in request.coupons:
        payment = PaymentInfo(request.currency.upper(), DateOrDuration(c.payment_date).to_date(market.ref_date))
        if c.kind == "fixed":
            coupons.append(fixed_coupon(payment, c.amount))
            continue
        if c.asset is None:
            raise InvalidArgument("Spot coupon requires an asset")
        asset = market.asset_market_from_name(c.asset).asset
        fixing = DateOrDuration(c.fixing_date or c.payment_date).to_date(market.ref_date)
        gearing, strike = c.amount, c.strike
        if strike is None:
            payoff = lambda spot, g=gearing: g * spot
        else:
            payoff = lambda spot, g=gearing, k=strike: g * np.maximum(spot - k, 0.0)
        coupons.append(spot_coupon(payment, asset, fixing, payoff))
    return CouponLeg(coupons, request.currency.upper())


# ==============================================================================
# Endpoints
# ==============================================================================

@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(status="healthy", version=__version__)


@app.post("/dividend-option/price", response_model=DividendOptionPriceResponse)
async def price_dividend_option(request: DividendOptionPriceRequest):
    """
    Price a vanilla option on an asset paying discrete dividends.

    Methods:
    - quadrature: Two step Gauss-Hermite quadrature
    - lehman: Shifted Black approximation
    """
    try:
        market = request.market.build()
        pricer, maturity, forward = _dividend_option_pricer(request, market)
        q = 1.0 if request.is_call else -1.0
        if request.method == "lehman":
            price = pricer.price_lehman(maturity, request.strike, request.volatility, q)
        else:
            price = pricer.price(maturity, request.strike, request.volatility, q)
        return DividendOptionPriceResponse(price=price, method=request.method, maturity=maturity, forward=forward)
    except QuantError as e:
        raise http_error(e)


@app.post("/dividend-option/implied-vol", response_model=ImpliedVolResponse)
async def dividend_option_implied_vol(request: ImpliedVolRequest):
    """Volatility reproducing a forward option price with the quadrature pricer."""
    try:
        market = request.market.build()
        pricer, maturity, _ = _dividend_option_pricer(request, market)
        q = 1.0 if request.is_call else -1.0
        vol = pricer.implied_vol(maturity, request.strike, request.price, q)
        return ImpliedVolResponse(implied_vol=vol, maturity=maturity)
    except QuantError as e:
        raise http_error(e)


@app.post("/dividend-option/calibrate", response_model=CalibrateResponse)
async def calibrate_black_scholes(request: CalibrateRequest):
    """Fit a Black-Scholes volatility term structure to target implied vols."""
    try:
        market = request.market.build()
        description = calibrate(request.calibration, market)
        return CalibrateResponse(model=description.model_dump(mode="json"))
    except QuantError as e:
        raise http_error(e)


@app.post("/bergomi/analytics", response_model=BergomiAnalyticsResponse)
async def bergomi_analytics(request: BergomiAnalyticsRequest):
    """Forward variance swap vols and covariance, and first order ATMF skews."""
    if len(request.starts) != len(request.ends):
        raise HTTPException(status_code=400, detail="starts and ends must have the same size")
    try:
        market = request.market.build()
        utils = Bergomi2FUtils(build_model(request.model, market))
        return BergomiAnalyticsResponse(
            fwd_vol_instant_vol=utils.fwd_vol_instant_vol(request.starts, request.ends).tolist(),
            fwd_vol_instant_covariance=utils.fwd_vol_instant_covariance(request.starts, request.ends).tolist(),
            atmf_skew=utils.atmf_skew_approx(request.skew_maturities).tolist(),
        )
    except QuantError as e:
        raise http_error(e)


@app.post("/mc/price", response_model=McPriceResponse)
async def mc_price(request: McPriceRequest):
    """
    Price a coupon leg by Monte Carlo simulation.

    Returns the total price and the price of each payment.
    """
    try:
        description = MODEL_DESCRIPTIONS[request.model.type](**request.model.parameters)
    except ValidationError as e:
        raise HTTPException(
            status_code=422,
            detail=f"Invalid model description: {str(e)}"
        )

    try:
        market = request.market.build()
        model = build_model(description, market)
        leg = _build_leg(request, market)

        run_cfg = request.run_config or RunConfig()
        config = MonteCarloConfig(
            num_paths=run_cfg.paths,
            random_generator=run_cfg.random_generator,
            seed=run_cfg.seed,
            block_size=run_cfg.block_size,
        )
        result = McPricer(config).price(leg, model, market)
        return McPriceResponse(**result.to_dict())
    except QuantError as e:
        raise http_error(e)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
