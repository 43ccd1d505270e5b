"""
Shared pytest fixtures for quantcore tests.

Provides reusable market snapshots, time measures and configurations for unit
and integration tests.
"""

import pytest
import math
from datetime import date
from typing import List

from quantcore.config import MonteCarloConfig, RandomGeneratorType
from quantcore.core.time_measure import TimeMeasure, act365, add_months
from quantcore.market import (
    AssetId,
    AssetMarket,
    DividendQuote,
    FinancingId,
    FlatRateCurve,
    LinearZcRateInterpolation,
    Market,
)


@pytest.fixture
def ref_date() -> date:
    """Standard market date for tests."""
    return date(2009, 6, 7)


@pytest.fixture
def time_measure(ref_date: date) -> TimeMeasure:
    """ACT/365F time measure from the market date."""
    return act365(ref_date)


@pytest.fixture
def eur_rate_curve(ref_date: date, time_measure: TimeMeasure) -> LinearZcRateInterpolation:
    """Upward sloping EUR zero-coupon curve (1Y, 2Y, 3Y, 5Y pillars)."""
    pillars = [date(2010, 6, 7), date(2011, 6, 7), date(2012, 6, 7), date(2014, 6, 7)]
    rates = [0.001, 0.003, 0.005, 0.008]
    zcs = [math.exp(-r * time_measure.t(d)) for r, d in zip(rates, pillars)]
    return LinearZcRateInterpolation(pillars, zcs, time_measure)


@pytest.fixture
def rates_market(eur_rate_curve: LinearZcRateInterpolation) -> Market:
    """Market with a single EUR risk-free curve."""
    return Market({FinancingId.risk_free("EUR"): eur_rate_curve})


@pytest.fixture
def stoxx() -> AssetId:
    return AssetId("Stoxx50", "EUR")


@pytest.fixture
def stoxx_dividends(ref_date: date) -> List[DividendQuote]:
    """Eleven monthly dividends paying 0.03 cash plus 2% of spot."""
    return [DividendQuote(add_months(ref_date, m), cash=0.03, yield_=0.02) for m in range(1, 12)]


@pytest.fixture
def equity_market(
    ref_date: date,
    time_measure: TimeMeasure,
    stoxx: AssetId,
    stoxx_dividends: List[DividendQuote]
) -> Market:
    """Stoxx50 with unit spot, 3% repo and monthly dividends; EUR cash at 1%."""
    asset_market = AssetMarket(
        stoxx,
        ref_date,
        time_measure,
        spot=1.0,
        repo_curve=FlatRateCurve(0.03, time_measure),
        dividends=stoxx_dividends,
    )
    return Market(
        {FinancingId.risk_free("EUR"): FlatRateCurve(0.01, time_measure)},
        {stoxx: asset_market},
    )


@pytest.fixture
def mc_config() -> MonteCarloConfig:
    """Sobol configuration used by the Monte Carlo tests."""
    return MonteCarloConfig(
        num_paths=2 ** 15,
        random_generator=RandomGeneratorType.SOBOL,
        seed=1234,
        block_size=2 ** 13,
    )


@pytest.fixture
def market_payload() -> dict:
    """JSON market description matching equity_market."""
    return {
        "ref_date": "2009-06-07",
        "curves": [{"financing": "RiskFree.EUR", "type": "flat", "flat_rate": 0.01}],
        "assets": [
            {
                "name": "Stoxx50",
                "currency": "EUR",
                "spot": 1.0,
                "repo": {"type": "flat", "flat_rate": 0.03},
                "dividends": [
                    {"ex_date": f"{m}M", "cash": 0.03, "yield": 0.02} for m in range(1, 12)
                ],
            }
        ],
    }
