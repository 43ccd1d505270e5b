"""Tests for the stochastic models, their descriptions and factories."""

import math
from datetime import date

import numpy as np
import pytest
from pydantic import ValidationError

from quantcore.core.time_measure import TimeMeasure, add_months
from quantcore.engines import build_path_generator
from quantcore.errors import InvalidArgument, UnimplementedFeature
from quantcore.market import AssetId, FinancingId, FlatRateCurve, Market, PaymentInfo
from quantcore.maths.functions import StepFunction, constant
from quantcore.maths.quadrature import gauss_hermite
from quantcore.maths.random import SobolGenerator
from quantcore.models import (
    Bergomi2FModel,
    Bergomi2FModelDescription,
    Bergomi2FUtils,
    BlackScholesModel,
    BlackScholesModelDescription,
    BlackScholesModelPathGenerator,
    DiscreteLocalDividend,
    Hw1Model,
    Hw1ModelDescription,
    Hw1ModelPathGenerator,
    LocalVolatilityModel,
    LocalVolModelDescription,
    OrnsteinUhlenbeck,
    OrnsteinUhlenbeck1DGenerator,
    build_model,
)
from quantcore.models import build_path_generator as build_model_path_generator
from quantcore.models.black_scholes import BlackScholesSpotRepresentation
from quantcore.models.descriptions import ModelDescription, piecewise_vol_function
from quantcore.models.hull_white import Hw1ZcRepresentation, zc_rate_coeff
from quantcore.models.ornstein_uhlenbeck import integrated_variance


def linear_response(generator, date_index: int):
    """Mean and per-gaussian sensitivities of a linear generator at one date."""
    mean = generator.path(np.zeros((1, generator.random_dim))).values[0, date_index, 0]
    unit = generator.path(np.eye(generator.random_dim)).values[:, date_index, 0]
    return mean, unit - mean


class TestOrnsteinUhlenbeck:
    """Exact OU discretisation."""

    @pytest.fixture
    def process(self) -> OrnsteinUhlenbeck:
        vol = StepFunction([0.0, 1.0, 2.0], [0.2, 0.1, 0.3], 0.0)
        return OrnsteinUhlenbeck(0.5, constant(0.05), vol, value0=0.1)

    def test_mean(self, process: OrnsteinUhlenbeck) -> None:
        dates = [0.5, 1.5, 3.0]
        generator = OrnsteinUhlenbeck1DGenerator(process, dates)
        k = 0.5
        for i, t in enumerate(dates):
            expected = 0.1 * math.exp(-k * t) + 0.05 * (1.0 - math.exp(-k * t)) / k
            mean, _ = linear_response(generator, i)
            assert mean == pytest.approx(expected, rel=1e-12)

    def test_variance(self, process: OrnsteinUhlenbeck) -> None:
        dates = [0.5, 1.5, 3.0]
        generator = OrnsteinUhlenbeck1DGenerator(process, dates)
        variance = integrated_variance(process.volatility, process.mean_reversion)
        for i, t in enumerate(dates):
            _, sensitivities = linear_response(generator, i)
            assert np.sum(sensitivities ** 2) == pytest.approx(variance(t), rel=1e-10)

    def test_covariance(self, process: OrnsteinUhlenbeck) -> None:
        """Cov(x(s), x(t)) = exp(-k (t - s)) Var(x(s)) for s <= t."""
        dates = [0.5, 1.5, 3.0]
        generator = OrnsteinUhlenbeck1DGenerator(process, dates)
        variance = integrated_variance(process.volatility, process.mean_reversion)
        _, first = linear_response(generator, 0)
        _, last = linear_response(generator, 2)
        expected = math.exp(-0.5 * 2.5) * variance(0.5)
        assert np.dot(first, last) == pytest.approx(expected, rel=1e-10)

    def test_path_shape(self, process: OrnsteinUhlenbeck) -> None:
        generator = OrnsteinUhlenbeck1DGenerator(process, [0.5, 1.0])
        path = generator.path(np.zeros((7, generator.random_dim)))
        assert path.values.shape == (7, 2, 1)
        assert path.num_paths == 7

    def test_invalid_gaussians(self, process: OrnsteinUhlenbeck) -> None:
        generator = OrnsteinUhlenbeck1DGenerator(process, [0.5, 1.0])
        with pytest.raises(InvalidArgument):
            generator.path(np.zeros((4, generator.random_dim + 1)))

    def test_invalid_dates(self, process: OrnsteinUhlenbeck) -> None:
        with pytest.raises(InvalidArgument):
            OrnsteinUhlenbeck1DGenerator(process, [1.0, 0.5])
        with pytest.raises(InvalidArgument):
            OrnsteinUhlenbeck1DGenerator(process, [-1.0, 0.5])


class TestHullWhite:
    """Hull-White 1F zero-coupons and forward measure dynamics."""

    @pytest.fixture
    def sigma(self) -> StepFunction:
        return StepFunction([0.0, 1.0, 2.0], [0.007, 0.004, 0.0065], 0.0)

    @pytest.mark.parametrize("mean_reversion,start_months,duration_months", [
        (0.01, 120, 360),
        (0.005, 360, 120),
    ])
    def test_zc_expectation(
        self,
        time_measure: TimeMeasure,
        sigma: StepFunction,
        mean_reversion: float,
        start_months: int,
        duration_months: int
    ) -> None:
        """E[Zc(t, T)] equals the forward discount when x(t) ~ N(0, V(t))."""
        model = Hw1Model(time_measure, "EUR", mean_reversion, sigma)
        start = add_months(time_measure.ref_date, start_months)
        maturity = add_months(start, duration_months)
        zc = Hw1ZcRepresentation(model).zc(start, maturity, 1.0)

        points, weights = gauss_hermite(30)
        std_dev = math.sqrt(model.drift_term()(time_measure.t(start)))
        factors = (std_dev * points)[:, None]
        assert np.dot(weights, zc(factors)) == pytest.approx(1.0, abs=1e-12)

    def test_zc_at_maturity(self, time_measure: TimeMeasure, sigma: StepFunction) -> None:
        model = Hw1Model(time_measure, "EUR", 0.01, sigma)
        d = date(2012, 1, 1)
        zc = Hw1ZcRepresentation(model).zc(d, d, 1.0)
        np.testing.assert_allclose(zc(np.array([[-0.1], [0.0], [0.2]])), 1.0, rtol=1e-15)

    def test_forward_measure_mean(self, time_measure: TimeMeasure, sigma: StepFunction) -> None:
        """Under the T-forward measure E[x(t)] = c(t, T) V(t)."""
        k, horizon = 0.02, 10.0
        model = Hw1Model(time_measure, "EUR", k, sigma)
        dates = [0.5, 1.0, 2.5, 5.0, 10.0]
        generator = Hw1ModelPathGenerator(model, dates, horizon)
        variance = model.drift_term()
        for i, t in enumerate(dates):
            mean, sensitivities = linear_response(generator, i)
            assert mean == pytest.approx(zc_rate_coeff(horizon - t, k) * variance(t), rel=1e-9, abs=1e-15)
            assert np.sum(sensitivities ** 2) == pytest.approx(variance(t), rel=1e-10)

    def test_small_mean_reversion(self) -> None:
        assert zc_rate_coeff(5.0, 1e-12) == pytest.approx(-5.0, rel=1e-10)
        assert zc_rate_coeff(5.0, 0.1) == pytest.approx(-(1.0 - math.exp(-0.5)) / 0.1, rel=1e-14)

    def test_other_numeraire_unsupported(self, time_measure: TimeMeasure, sigma: StepFunction) -> None:
        model = Hw1Model(time_measure, "EUR", 0.01, sigma)
        measure = PaymentInfo("USD", date(2012, 1, 1))
        with pytest.raises(UnimplementedFeature):
            Hw1ModelPathGenerator.create(model, [date(2011, 1, 1)], measure)


class TestBlackScholes:
    """Black-Scholes forward paths with discrete dividends."""

    def test_zero_vol_matches_forward(self, equity_market: Market, stoxx: AssetId, ref_date: date) -> None:
        model = build_model(BlackScholesModelDescription(asset="Stoxx50", sigma=[("1Y", 0.0)]), equity_market)
        dates = [add_months(ref_date, 3), add_months(ref_date, 6), add_months(ref_date, 12)]
        generator = build_path_generator(model, equity_market, dates)
        path = generator.path(np.zeros((3, generator.random_dim)))

        cash = equity_market.discount_curve(FinancingId.risk_free("EUR"))
        asset_market = equity_market.asset_market(stoxx)
        forward = asset_market.forward(cash)
        representation = BlackScholesSpotRepresentation(model.time, asset_market.asset_financing_curve(cash), dates[-1])
        for i, d in enumerate(dates):
            spots = representation.spot(d)(path.process_value(i))
            np.testing.assert_allclose(spots, forward.fwd(d), rtol=1e-12)

    def test_sub_steps_on_dividends(self, equity_market: Market, ref_date: date) -> None:
        model = build_model(BlackScholesModelDescription(asset="Stoxx50", sigma=[("1Y", 0.2)]), equity_market)
        dates = [add_months(ref_date, 3), add_months(ref_date, 12)]
        generator = build_path_generator(model, equity_market, dates)
        assert len(generator.all_simulated_dates) == 12
        assert generator.path(np.zeros((5, generator.random_dim))).values.shape == (5, 2, 1)

    def test_lognormal_moments(self, time_measure: TimeMeasure) -> None:
        model = BlackScholesModel(time_measure, AssetId("X", "EUR"), constant(0.2))
        generator = BlackScholesModelPathGenerator(model, [0.5, 1.0], FlatRateCurve(0.02, time_measure), 1.0, 100.0)
        gaussians = SobolGenerator(generator.random_dim, seed=7).next_gaussians(2 ** 14)
        terminal = generator.path(gaussians).values[:, 1, 0]
        assert np.mean(terminal) == pytest.approx(100.0 / math.exp(-0.02), rel=2e-3)
        assert np.var(np.log(terminal)) == pytest.approx(0.04, rel=2e-2)

    def test_large_dividend_floors_at_zero(self, time_measure: TimeMeasure) -> None:
        dividend = DiscreteLocalDividend(0.5, 0.0, 1000.0)
        model = BlackScholesModel(time_measure, AssetId("X", "EUR"), constant(0.0), [dividend])
        generator = BlackScholesModelPathGenerator(model, [1.0], FlatRateCurve(0.0, time_measure), 1.0, 100.0)
        path = generator.path(np.zeros((2, generator.random_dim)))
        np.testing.assert_array_equal(path.values[:, 0, 0], 0.0)

    def test_quanto_measure_unsupported(self, equity_market: Market, ref_date: date) -> None:
        model = build_model(BlackScholesModelDescription(asset="Stoxx50", sigma=[("1Y", 0.2)]), equity_market)
        measure = PaymentInfo("USD", add_months(ref_date, 12))
        with pytest.raises(UnimplementedFeature):
            build_model_path_generator(model, equity_market, [add_months(ref_date, 12)], measure)


class TestBergomi:
    """Bergomi 2F closed forms."""

    @pytest.fixture
    def model(self, time_measure: TimeMeasure) -> Bergomi2FModel:
        return Bergomi2FModel(time_measure, AssetId("X", "EUR"), [], constant(0.04),
                              k1=2.0, k2=0.3, theta=0.3, nu=1.5, rho_xy=0.4, rho_sx=-0.7, rho_sy=-0.5)

    def test_one_factor_instant_vol(self, time_measure: TimeMeasure) -> None:
        k1, nu = 2.0, 1.5
        model = Bergomi2FModel(time_measure, AssetId("X", "EUR"), [], constant(0.04),
                               k1=k1, k2=0.3, theta=0.0, nu=nu, rho_xy=0.4, rho_sx=-0.7, rho_sy=-0.5)
        starts, ends = [0.0, 1.0, 0.5], [1.0, 2.0, 3.0]
        vols = Bergomi2FUtils(model).fwd_vol_instant_vol(starts, ends)
        for vol, s, e in zip(vols, starts, ends):
            expected = nu * (math.exp(-k1 * s) - math.exp(-k1 * e)) / (k1 * (e - s))
            assert vol == pytest.approx(expected, rel=1e-12)

    def test_one_factor_skew(self, time_measure: TimeMeasure) -> None:
        k1, nu, rho_sx = 2.0, 1.5, -0.7
        model = Bergomi2FModel(time_measure, AssetId("X", "EUR"), [], constant(0.04),
                               k1=k1, k2=0.3, theta=0.0, nu=nu, rho_xy=0.4, rho_sx=rho_sx, rho_sy=-0.5)
        maturities = [0.25, 1.0, 5.0]
        skews = Bergomi2FUtils(model).atmf_skew_approx(maturities)
        for skew, t in zip(skews, maturities):
            kt = k1 * t
            assert skew == pytest.approx(nu * rho_sx * (kt - 1.0 + math.exp(-kt)) / kt ** 2, rel=1e-12)

    def test_covariance(self, model: Bergomi2FModel) -> None:
        utils = Bergomi2FUtils(model)
        starts, ends = [0.0, 0.5, 1.0, 2.0], [0.5, 1.0, 2.0, 5.0]
        covariance = utils.fwd_vol_instant_covariance(starts, ends)
        vols = utils.fwd_vol_instant_vol(starts, ends)
        np.testing.assert_allclose(covariance, covariance.T, rtol=1e-14)
        np.testing.assert_allclose(np.diag(covariance), vols ** 2, rtol=1e-12)
        assert np.min(np.linalg.eigvalsh(covariance)) > -1e-12

    def test_skew_sign_symmetry(self, model: Bergomi2FModel, time_measure: TimeMeasure) -> None:
        mirror = Bergomi2FModel(time_measure, model.asset, [], model.xi, model.k1, model.k2, model.theta,
                                model.nu, model.rho_xy, -model.rho_sx, -model.rho_sy)
        maturities = [0.5, 1.0, 3.0]
        np.testing.assert_allclose(Bergomi2FUtils(mirror).atmf_skew_approx(maturities),
                                   -Bergomi2FUtils(model).atmf_skew_approx(maturities), rtol=1e-14)
        assert np.all(Bergomi2FUtils(model).atmf_skew_approx(maturities) < 0.0)

    def test_xi_from_term_vols(self, equity_market: Market) -> None:
        description = Bergomi2FModelDescription(
            asset="Stoxx50", sigma=[("1Y", 0.2), ("2Y", 0.25)],
            k1=4.0, k2=0.2, theta=0.3, nu=1.2, rho_xy=0.3, rho_sx=-0.6, rho_sy=-0.4,
        )
        model = build_model(description, equity_market)
        assert model.xi(0.5) == pytest.approx(0.04, rel=1e-12)
        assert model.xi(1.5) == pytest.approx(0.085, rel=1e-12)
        assert model.xi(3.0) == pytest.approx(0.085, rel=1e-12)
        assert len(model.dividends) == 11


class TestLocalVol:
    """Local volatility model data."""

    @pytest.fixture
    def model(self, time_measure: TimeMeasure) -> LocalVolatilityModel:
        return LocalVolatilityModel(time_measure, AssetId("X", "EUR"), [0.5, 1.0], [90.0, 110.0],
                                    [[0.2, 0.3], [0.25, 0.35]])

    def test_total_variance(self, model: LocalVolatilityModel) -> None:
        variance = model.total_variance(100.0)
        assert variance(0.25) == pytest.approx(0.015625, rel=1e-12)
        assert variance(0.5) == pytest.approx(0.03125, rel=1e-12)
        assert variance(0.75) == pytest.approx(0.060625, rel=1e-12)
        assert variance(1.0) == pytest.approx(0.09, rel=1e-12)
        assert variance(2.0) == pytest.approx(0.18, rel=1e-12)

    def test_flat_strike_extrapolation(self, model: LocalVolatilityModel) -> None:
        assert model.total_variance(50.0)(1.0) == pytest.approx(0.0625, rel=1e-12)

    def test_shape_mismatch(self, time_measure: TimeMeasure) -> None:
        with pytest.raises(InvalidArgument):
            LocalVolatilityModel(time_measure, AssetId("X", "EUR"), [0.5, 1.0], [100.0], [[0.2]])
        with pytest.raises(InvalidArgument):
            LocalVolatilityModel(time_measure, AssetId("X", "EUR"), [0.0, 1.0], [100.0], [[0.2], [0.2]])


class TestLocalVariance:
    """Dupire local variance of the implied total variance surface."""

    MATURITIES = [0.5, 1.0, 2.0]
    STRIKES = [80.0, 100.0, 120.0]
    FORWARDS = [100.0, 101.0, 102.0]

    def local_variance(self, time_measure: TimeMeasure, row_vols):
        vols = [[v] * len(self.STRIKES) for v in row_vols]
        model = LocalVolatilityModel(time_measure, AssetId("X", "EUR"), self.MATURITIES, self.STRIKES, vols)
        return model.variance_interpoler(self.FORWARDS).local_variance()

    def test_flat_surface(self, time_measure: TimeMeasure) -> None:
        """Local variance equals the implied variance of a flat surface."""
        local_var = self.local_variance(time_measure, [0.2, 0.2, 0.2])
        for t in [0.0, 0.1, 0.5, 0.75, 1.5, 3.0]:
            for y in [-0.3, 0.0, 0.2, 1.0]:
                assert local_var.eval(t, y) == pytest.approx(0.04, rel=1e-12)
                assert local_var.time_slice(t)(y) == pytest.approx(0.04, rel=1e-12)
        assert local_var.time_average(0.2, 2.5)(0.1) == pytest.approx(0.04, rel=1e-12)

    def test_term_structure_is_forward_variance(self, time_measure: TimeMeasure) -> None:
        """Without smile the local variance is the forward variance of each step."""
        local_var = self.local_variance(time_measure, [0.2, 0.3, 0.25])
        expected = {0.25: 0.04, 0.75: 0.14, 1.5: 0.035, 3.0: 0.0625}
        for t, forward_var in expected.items():
            assert local_var.eval(t, 0.1) == pytest.approx(forward_var, rel=1e-12)
            assert local_var.time_slice(t)(-0.2) == pytest.approx(forward_var, rel=1e-12)

    def test_time_average_across_pillars(self, time_measure: TimeMeasure) -> None:
        local_var = self.local_variance(time_measure, [0.2, 0.3, 0.25])
        expected = (0.25 * 0.04 + 0.5 * 0.14 + 0.5 * 0.035) / 1.25
        assert local_var.time_average(0.25, 1.5)(0.0) == pytest.approx(expected, rel=1e-12)
        assert local_var.time_average(0.6, 0.9)(0.0) == pytest.approx(0.14, rel=1e-12)

    def test_slice_matches_eval_with_smile(self, time_measure: TimeMeasure) -> None:
        vols = [[0.26, 0.2, 0.18], [0.25, 0.21, 0.19], [0.24, 0.22, 0.2]]
        model = LocalVolatilityModel(time_measure, AssetId("X", "EUR"), self.MATURITIES, self.STRIKES, vols)
        local_var = model.variance_interpoler(self.FORWARDS).local_variance()
        for t in [0.3, 0.8, 1.2, 2.5]:
            slice_t = local_var.time_slice(t)
            for y in [-0.2, 0.0, 0.15]:
                assert slice_t(y) == pytest.approx(local_var.eval(t, y), rel=1e-13)
                assert local_var.eval(t, y) > 0.0

    def test_interpoler_reproduces_pillars(self, time_measure: TimeMeasure) -> None:
        vols = [[0.26, 0.2, 0.18], [0.25, 0.21, 0.19], [0.24, 0.22, 0.2]]
        model = LocalVolatilityModel(time_measure, AssetId("X", "EUR"), self.MATURITIES, self.STRIKES, vols)
        interpoler = model.variance_interpoler(self.FORWARDS)
        for i, (t, forward) in enumerate(zip(self.MATURITIES, self.FORWARDS)):
            for j, strike in enumerate(self.STRIKES):
                y = math.log(strike / forward)
                assert interpoler.eval(t, y) == pytest.approx(vols[i][j] ** 2 * t, rel=1e-12)
        y = math.log(100.0 / 101.0)
        assert interpoler.eval(0.25, y) == pytest.approx(0.5 * interpoler.eval(0.5, y), rel=1e-12)

    def test_invalid_inputs(self, time_measure: TimeMeasure) -> None:
        model = LocalVolatilityModel(time_measure, AssetId("X", "EUR"), self.MATURITIES, self.STRIKES,
                                     [[0.2] * 3] * 3)
        with pytest.raises(InvalidArgument):
            model.variance_interpoler([100.0, 101.0])
        with pytest.raises(InvalidArgument):
            model.variance_interpoler([100.0, -1.0, 102.0])
        with pytest.raises(InvalidArgument):
            model.variance_interpoler(self.FORWARDS).local_variance().time_average(1.0, 0.5)


class TestDescriptions:
    """Model descriptions and factories."""

    def test_piecewise_vol(self, time_measure: TimeMeasure) -> None:
        vol = piecewise_vol_function([("1Y", 0.2), ("2Y", 0.3)], time_measure)
        assert vol(0.5) == pytest.approx(0.2)
        assert vol(1.5) == pytest.approx(0.3)
        assert vol(5.0) == pytest.approx(0.3)
        assert piecewise_vol_function([("1Y", 0.2)], time_measure)(10.0) == pytest.approx(0.2)

    def test_piecewise_vol_unsorted(self, time_measure: TimeMeasure) -> None:
        with pytest.raises(InvalidArgument):
            piecewise_vol_function([("2Y", 0.2), ("1Y", 0.3)], time_measure)

    def test_invalid_descriptions(self) -> None:
        with pytest.raises(ValidationError):
            Hw1ModelDescription(currency="EUR", mean_reversion=0.01, sigma=[("abc", 0.01)])
        with pytest.raises(ValidationError):
            Hw1ModelDescription(currency="EUR", mean_reversion=0.01, sigma=[])
        with pytest.raises(ValidationError):
            BlackScholesModelDescription(asset="X", sigma=[("1Y", -0.2)])
        with pytest.raises(ValidationError):
            LocalVolModelDescription(asset="X", maturities=["1Y"], strikes=[1.0, 2.0], vols=[[0.2]])
        with pytest.raises(ValidationError):
            Bergomi2FModelDescription(asset="X", sigma=[("1Y", 0.2)], k1=1.0, k2=0.1, theta=1.5,
                                      nu=1.0, rho_xy=0.0, rho_sx=0.0, rho_sy=0.0)

    def test_build_hw1(self, rates_market: Market) -> None:
        description = Hw1ModelDescription(currency="EUR", mean_reversion=0.01,
                                          sigma=[("1Y", 0.007), ("2Y", 0.004)])
        model = build_model(description, rates_market)
        assert isinstance(model, Hw1Model)
        assert model.pivot_currency == "EUR"
        assert model.sigma(0.5) == pytest.approx(0.007)
        assert model.sigma(3.0) == pytest.approx(0.004)

    def test_build_black_scholes_dividends(self, equity_market: Market) -> None:
        with_divs = build_model(BlackScholesModelDescription(asset="Stoxx50", sigma=[("1Y", 0.2)]), equity_market)
        without = build_model(BlackScholesModelDescription(asset="Stoxx50", sigma=[("1Y", 0.2)], with_divs=False),
                              equity_market)
        assert len(with_divs.dividends) == 11
        assert without.dividends == ()

    def test_build_local_vol(self, equity_market: Market) -> None:
        description = LocalVolModelDescription(asset="Stoxx50", maturities=["6M", "1Y"], strikes=[0.9, 1.1],
                                               vols=[[0.2, 0.18], [0.22, 0.2]])
        model = build_model(description, equity_market)
        assert isinstance(model, LocalVolatilityModel)
        assert model.maturities[-1] == pytest.approx(1.0)

    def test_unsupported_simulations(self, equity_market: Market, ref_date: date) -> None:
        bergomi = build_model(Bergomi2FModelDescription(
            asset="Stoxx50", sigma=[("1Y", 0.2)], k1=4.0, k2=0.2, theta=0.3, nu=1.2,
            rho_xy=0.3, rho_sx=-0.6, rho_sy=-0.4,
        ), equity_market)
        local_vol = build_model(LocalVolModelDescription(asset="Stoxx50", maturities=["1Y"], strikes=[1.0],
                                                         vols=[[0.2]]), equity_market)
        dates = [add_months(ref_date, 12)]
        for model in (bergomi, local_vol):
            with pytest.raises(UnimplementedFeature):
                build_path_generator(model, equity_market, dates)

    def test_unknown_description(self, equity_market: Market) -> None:
        with pytest.raises(UnimplementedFeature):
            build_model(ModelDescription(), equity_market)
