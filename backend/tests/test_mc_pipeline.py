"""
End-to-end Monte Carlo tests: model factory, engine and pricer.

Prices of deterministic or forward-like coupons are compared with their
closed forms from the market curves.
"""

import dataclasses
import math
from datetime import date, timedelta
from typing import List

import numpy as np
import pytest

from quantcore.config import MonteCarloConfig, RandomGeneratorType
from quantcore.core.time_measure import add_months
from quantcore.engines import (
    CancellationToken,
    McEngine,
    McModelFactory,
    PathFlows,
    Price,
    PriceFlowsAggregator,
    PriceResult,
)
from quantcore.errors import InvalidArgument, RunCancelled, UnimplementedFeature
from quantcore.market import AssetId, FinancingId, Market, PaymentInfo
from quantcore.maths.black import black_price
from quantcore.models import (
    Bergomi2FModelDescription,
    BlackScholesModelDescription,
    Hw1ModelDescription,
    build_model,
)
from quantcore.pricers import McPricer
from quantcore.products import CouponLeg, fixed_coupon, spot_coupon


def annual_dates(ref_date: date, count: int) -> List[date]:
    return [add_months(ref_date, 12 * i) for i in range(1, count + 1)]


@pytest.fixture
def hw1_model(rates_market: Market):
    description = Hw1ModelDescription(
        currency="EUR",
        mean_reversion=0.01,
        sigma=[("1Y", 0.007), ("2Y", 0.004), ("3Y", 0.0065)],
    )
    return build_model(description, rates_market)


@pytest.fixture
def fixed_leg(ref_date: date) -> CouponLeg:
    """Ten annual unit coupons."""
    coupons = [fixed_coupon(PaymentInfo("EUR", d), 1.0) for d in annual_dates(ref_date, 10)]
    return CouponLeg(coupons, "EUR")


def black_scholes(market: Market, vol: float, with_divs: bool = True):
    return build_model(BlackScholesModelDescription(asset="Stoxx50", sigma=[("1Y", vol)], with_divs=with_divs),
                       market)


class TestHullWhitePricing:
    """Fixed coupons under Hull-White rates."""

    def test_fixed_leg_matches_discount(self, hw1_model, fixed_leg: CouponLeg, rates_market: Market,
                                        mc_config: MonteCarloConfig) -> None:
        result = McPricer(mc_config).price(fixed_leg, hw1_model, rates_market)
        curve = rates_market.discount_curve(FinancingId.risk_free("EUR"))
        expected = sum(curve.zc(p.date) for p in fixed_leg.payments)
        assert result.price.value == pytest.approx(expected, rel=1e-3)
        assert result.price.currency == "EUR"
        for payment, price in result.details.items():
            assert price.value == pytest.approx(curve.zc(payment.date), rel=1e-3)

    def test_result_metadata(self, hw1_model, fixed_leg: CouponLeg, rates_market: Market,
                             mc_config: MonteCarloConfig, ref_date: date) -> None:
        result = McPricer(mc_config).price(fixed_leg, hw1_model, rates_market)
        assert result.num_paths == mc_config.num_paths
        assert result.valuation_date == ref_date
        assert len(result.details) == 10
        assert result.computation_time_ms >= 0.0

    def test_duplicate_payments_are_summed(self, hw1_model, rates_market: Market, ref_date: date,
                                           mc_config: MonteCarloConfig) -> None:
        payment = PaymentInfo("EUR", add_months(ref_date, 24))
        leg = CouponLeg([fixed_coupon(payment, 1.0), fixed_coupon(payment, 2.0)], "EUR")
        result = McPricer(mc_config).price(leg, hw1_model, rates_market)
        zc = rates_market.discount_curve(FinancingId.risk_free("EUR")).zc(payment.date)
        assert list(result.details) == [payment]
        assert result.details[payment].value == pytest.approx(3.0 * zc, rel=1e-3)

    def test_equity_coupon_not_simulated(self, hw1_model, rates_market: Market, ref_date: date,
                                         mc_config: MonteCarloConfig) -> None:
        d = add_months(ref_date, 12)
        leg = CouponLeg([spot_coupon(PaymentInfo("EUR", d), AssetId("Stoxx50", "EUR"), d)], "EUR")
        with pytest.raises(UnimplementedFeature):
            McPricer(mc_config).price(leg, hw1_model, rates_market)


class TestBlackScholesPricing:
    """Spot coupons under Black-Scholes with dividends."""

    def test_zero_vol_is_forward(self, equity_market: Market, stoxx: AssetId, ref_date: date,
                                 mc_config: MonteCarloConfig) -> None:
        dates = [add_months(ref_date, m) for m in (3, 6, 12)]
        leg = CouponLeg([spot_coupon(PaymentInfo("EUR", d), stoxx, d) for d in dates], "EUR")
        result = McPricer(mc_config).price(leg, black_scholes(equity_market, 0.0), equity_market)

        cash = equity_market.discount_curve(FinancingId.risk_free("EUR"))
        forward = equity_market.asset_market(stoxx).forward(cash)
        for d in dates:
            price = result.details[PaymentInfo("EUR", d)].value
            assert price == pytest.approx(forward.fwd(d) * cash.zc(d), rel=50 * np.finfo(float).eps)

    def test_forward_with_vol(self, equity_market: Market, stoxx: AssetId, ref_date: date,
                              mc_config: MonteCarloConfig) -> None:
        fixing = add_months(ref_date, 9)
        payment = add_months(ref_date, 12)
        leg = CouponLeg([spot_coupon(PaymentInfo("EUR", payment), stoxx, fixing)], "EUR")
        result = McPricer(mc_config).price(leg, black_scholes(equity_market, 0.2), equity_market)

        cash = equity_market.discount_curve(FinancingId.risk_free("EUR"))
        expected = equity_market.asset_market(stoxx).forward(cash).fwd(fixing) * cash.zc(payment)
        assert result.price.value == pytest.approx(expected, rel=1e-3)

    def test_call_without_dividends(self, equity_market: Market, stoxx: AssetId, ref_date: date,
                                    mc_config: MonteCarloConfig) -> None:
        expiry = add_months(ref_date, 12)
        call = spot_coupon(PaymentInfo("EUR", expiry), stoxx, expiry, lambda s: np.maximum(s - 1.0, 0.0))
        result = McPricer(mc_config).price(CouponLeg([call], "EUR"),
                                           black_scholes(equity_market, 0.2, with_divs=False), equity_market)

        cash = equity_market.discount_curve(FinancingId.risk_free("EUR"))
        asset_financing = equity_market.asset_market(stoxx).asset_financing_curve(cash)
        forward = 1.0 / asset_financing.zc(expiry)
        maturity = asset_financing.time.t(expiry)
        expected = black_price(forward, 1.0, 0.2, maturity, 1.0) * cash.zc(expiry)
        assert result.price.value == pytest.approx(expected, rel=5e-3)

    def test_reproducible_across_block_sizes(self, equity_market: Market, stoxx: AssetId,
                                             ref_date: date) -> None:
        d = add_months(ref_date, 6)
        leg = CouponLeg([spot_coupon(PaymentInfo("EUR", d), stoxx, d)], "EUR")
        model = black_scholes(equity_market, 0.3)
        prices = [
            McPricer(MonteCarloConfig(num_paths=2 ** 12, seed=5, block_size=block)).price(
                leg, model, equity_market).price.value
            for block in (2 ** 8, 2 ** 10, 2 ** 12)
        ]
        assert prices[1] == pytest.approx(prices[0], rel=1e-12)
        assert prices[2] == pytest.approx(prices[0], rel=1e-12)

    def test_pseudo_random_generator(self, equity_market: Market, stoxx: AssetId, ref_date: date) -> None:
        d = add_months(ref_date, 6)
        leg = CouponLeg([spot_coupon(PaymentInfo("EUR", d), stoxx, d)], "EUR")
        config = MonteCarloConfig(num_paths=2 ** 16, random_generator=RandomGeneratorType.PSEUDO, seed=11)
        result = McPricer(config).price(leg, black_scholes(equity_market, 0.2), equity_market)
        cash = equity_market.discount_curve(FinancingId.risk_free("EUR"))
        expected = equity_market.asset_market(stoxx).forward(cash).fwd(d) * cash.zc(d)
        assert result.price.value == pytest.approx(expected, rel=1e-2)


class TestPricingErrors:
    """Unsupported products and invalid runs."""

    def test_fx_conversion_unsupported(self, hw1_model, rates_market: Market, ref_date: date,
                                       mc_config: MonteCarloConfig) -> None:
        leg = CouponLeg([fixed_coupon(PaymentInfo("EUR", add_months(ref_date, 12)), 1.0)], "USD")
        with pytest.raises(UnimplementedFeature):
            McPricer(mc_config).price(leg, hw1_model, rates_market)

    def test_foreign_payment_unsupported(self, hw1_model, rates_market: Market, ref_date: date,
                                         mc_config: MonteCarloConfig) -> None:
        leg = CouponLeg([fixed_coupon(PaymentInfo("USD", add_months(ref_date, 12)), 1.0)], "USD")
        with pytest.raises(UnimplementedFeature):
            McPricer(mc_config).price(leg, hw1_model, rates_market)

    def test_cancelled_run(self, hw1_model, fixed_leg: CouponLeg, rates_market: Market,
                           mc_config: MonteCarloConfig) -> None:
        token = CancellationToken()
        token.cancel()
        assert token.is_cancelled
        with pytest.raises(RunCancelled):
            McPricer(mc_config).price(fixed_leg, hw1_model, rates_market, token)

    def test_fixing_before_market_date(self, equity_market: Market, stoxx: AssetId, ref_date: date,
                                       mc_config: MonteCarloConfig) -> None:
        fixing = ref_date - timedelta(days=1)
        leg = CouponLeg([spot_coupon(PaymentInfo("EUR", add_months(ref_date, 1)), stoxx, fixing)], "EUR")
        with pytest.raises(InvalidArgument):
            McPricer(mc_config).price(leg, black_scholes(equity_market, 0.2), equity_market)

    def test_fixing_after_payment(self, stoxx: AssetId, ref_date: date) -> None:
        with pytest.raises(InvalidArgument):
            spot_coupon(PaymentInfo("EUR", add_months(ref_date, 1)), stoxx, add_months(ref_date, 2))

    def test_asset_not_simulated(self, equity_market: Market, ref_date: date,
                                 mc_config: MonteCarloConfig) -> None:
        d = add_months(ref_date, 6)
        leg = CouponLeg([spot_coupon(PaymentInfo("EUR", d), AssetId("Dax", "EUR"), d)], "EUR")
        with pytest.raises(UnimplementedFeature):
            McPricer(mc_config).price(leg, black_scholes(equity_market, 0.2), equity_market)

    def test_bergomi_simulation_unsupported(self, equity_market: Market, stoxx: AssetId, ref_date: date,
                                            mc_config: MonteCarloConfig) -> None:
        model = build_model(Bergomi2FModelDescription(
            asset="Stoxx50", sigma=[("1Y", 0.2)], k1=4.0, k2=0.2, theta=0.3, nu=1.2,
            rho_xy=0.3, rho_sx=-0.6, rho_sy=-0.4,
        ), equity_market)
        d = add_months(ref_date, 6)
        leg = CouponLeg([spot_coupon(PaymentInfo("EUR", d), stoxx, d)], "EUR")
        with pytest.raises(UnimplementedFeature):
            McPricer(mc_config).price(leg, model, equity_market)

    def test_empty_leg(self) -> None:
        with pytest.raises(InvalidArgument):
            CouponLeg([], "EUR")


class TestEngineParts:
    """Model factory, aggregation and results."""

    def test_mc_model_measure(self, hw1_model, rates_market: Market, ref_date: date) -> None:
        dates = annual_dates(ref_date, 3)
        mc_model = McModelFactory().build(hw1_model, rates_market, [dates[2], dates[0], dates[1], dates[0]])
        assert mc_model.simulated_dates == dates
        assert mc_model.proba_measure == PaymentInfo("EUR", dates[2])
        curve = rates_market.discount_curve(FinancingId.risk_free("EUR"))
        assert mc_model.numeraire0 == pytest.approx(curve.zc(dates[2]), rel=1e-15)
        assert mc_model.random_generator.dimension == mc_model.process_path_generator.random_dim

    def test_mc_model_is_frozen(self, hw1_model, rates_market: Market, ref_date: date) -> None:
        mc_model = McModelFactory().build(hw1_model, rates_market, annual_dates(ref_date, 2))
        with pytest.raises(dataclasses.FrozenInstanceError):
            mc_model.numeraire0 = 1.0

    def test_mc_model_date_before_market(self, hw1_model, rates_market: Market, ref_date: date) -> None:
        with pytest.raises(InvalidArgument):
            McModelFactory().build(hw1_model, rates_market, [ref_date - timedelta(days=3)])

    def test_aggregator(self, ref_date: date) -> None:
        labels = [PaymentInfo("EUR", ref_date), PaymentInfo("EUR", add_months(ref_date, 1))]
        aggregator = PriceFlowsAggregator(labels)
        aggregator.accumulate(np.array([[1.0, 2.0], [3.0, 4.0]]))
        aggregator.accumulate(np.array([[5.0, 6.0]]))
        result = aggregator.result()
        assert isinstance(result, PathFlows)
        np.testing.assert_allclose(result.flows, [3.0, 4.0])
        assert result.labels == labels
        assert aggregator.num_paths == 3

    def test_empty_aggregator(self, ref_date: date) -> None:
        with pytest.raises(InvalidArgument):
            PriceFlowsAggregator([PaymentInfo("EUR", ref_date)]).result()

    def test_invalid_engine(self) -> None:
        with pytest.raises(InvalidArgument):
            McEngine(0, 10)
        with pytest.raises(InvalidArgument):
            McEngine(10, 0)

    def test_price_arithmetic(self) -> None:
        total = Price(1.0, "EUR") + Price(2.5, "EUR")
        assert total == Price(3.5, "EUR")
        assert total.convert("EUR") is total
        with pytest.raises(InvalidArgument):
            Price(1.0, "EUR") + Price(1.0, "USD")
        with pytest.raises(UnimplementedFeature):
            Price(1.0, "EUR").convert("USD")

    def test_result_to_dict(self, ref_date: date) -> None:
        payment = PaymentInfo("EUR", date(2010, 6, 7))
        result = PriceResult(Price(0.99, "EUR"), {payment: Price(0.99, "EUR")}, 1024, ref_date, 12.5)
        payload = result.to_dict()
        assert payload["price"] == 0.99
        assert payload["valuation_date"] == "2009-06-07"
        assert payload["details"] == [
            {"currency": "EUR", "date": "2010-06-07", "financing": "RiskFree.EUR", "price": 0.99}
        ]
