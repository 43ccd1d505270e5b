#!/usr/bin/env python3
"""
Example: price coupon legs by Monte Carlo on a JSON market snapshot.

Prices an annual fixed leg under Hull-White 1F and a leg of annual at-the-money
calls under Black-Scholes, then compares the call coupons with the dividend
option pricer.

Usage:
    python examples/run_price.py [market.json] [--paths N] [--seed S] [--verbose]
"""

from pathlib import Path
import argparse
import json
import logging
import sys
import traceback

import numpy as np
from pydantic import ValidationError

from quantcore.config import MonteCarloConfig
from quantcore.core.time_measure import act365, add_months
from quantcore.engines import PriceResult
from quantcore.errors import QuantError
from quantcore.market import FinancingId, MarketDescription, PaymentInfo
from quantcore.models import (
    BlackScholesModelDescription,
    BlackScholesWithDividendOption,
    Hw1ModelDescription,
    build_model,
)
from quantcore.pricers import McPricer
from quantcore.products import CouponLeg, fixed_coupon, spot_coupon


def print_result(title: str, result: PriceResult) -> None:
    print(f"\n{title}")
    print("-" * 70)
    for payment, price in result.details.items():
        print(f"  {payment.date.isoformat()}  {price.value:>14.6f} {price.currency}")
    print(f"  {'Total':<10}  {result.price.value:>14.6f} {result.price.currency}")
    print(f"  {result.num_paths:,} paths in {result.computation_time_ms:.0f} ms")


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Price coupon legs on a JSON market snapshot"
    )
    parser.add_argument(
        "market",
        type=str,
        nargs="?",
        default=str(Path(__file__).parent / "market_stoxx.json"),
        help="Path to JSON market description"
    )
    parser.add_argument(
        "--paths", "-n",
        type=int,
        default=2 ** 15,
        help="Number of Monte Carlo paths"
    )
    parser.add_argument(
        "--seed", "-s",
        type=int,
        default=42,
        help="Random seed for reproducibility"
    )
    parser.add_argument(
        "--block-size", "-b",
        type=int,
        default=2 ** 13,
        help="Paths per batch (default: 8,192)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Print detailed output"
    )

    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)
    market_path = Path(args.market)

    print("=" * 70)
    print("QUANTCORE MONTE CARLO PRICER")
    print("=" * 70)

    try:
        # 1. Load and validate market
        print(f"\n[1/3] Loading market: {market_path.name}")
        market = MarketDescription(**json.loads(market_path.read_text())).build()
        print(f"      Reference date: {market.ref_date}")
        print(f"      Assets: {', '.join(str(a) for a in market.asset_ids)}")

        config = MonteCarloConfig(num_paths=args.paths, seed=args.seed, block_size=args.block_size)
        pricer = McPricer(config)
        dates = [add_months(market.ref_date, 12 * i) for i in range(1, 6)]

        # 2. Fixed leg under Hull-White
        print("\n[2/3] Hull-White 1F fixed leg...")
        hw1 = build_model(Hw1ModelDescription(currency="EUR", mean_reversion=0.02,
                                              sigma=[("1Y", 0.008), ("5Y", 0.007)]), market)
        fixed_leg = CouponLeg([fixed_coupon(PaymentInfo("EUR", d), 1.0) for d in dates], "EUR", "fixed")
        print_result("Fixed leg", pricer.price(fixed_leg, hw1, market))

        # 3. At-the-money calls under Black-Scholes
        print("\n[3/3] Black-Scholes call leg...")
        asset_market = market.asset_market_from_name("Stoxx50")
        strike = asset_market.spot
        bs = build_model(BlackScholesModelDescription(asset="Stoxx50", sigma=[("1Y", 0.18), ("5Y", 0.2)]), market)
        calls = [
            spot_coupon(PaymentInfo("EUR", d), asset_market.asset, d, lambda s: np.maximum(s - strike, 0.0))
            for d in dates
        ]
        result = pricer.price(CouponLeg(calls, "EUR", "calls"), bs, market)
        print_result("Call leg", result)

        time = act365(market.ref_date)
        cash = market.discount_curve(FinancingId.risk_free("EUR"))
        quadrature = BlackScholesWithDividendOption.build(asset_market.spot, asset_market.dividends,
                                                          asset_market.asset_financing_curve(cash), time)
        variance = (bs.sigma * bs.sigma).integral(0.0)
        print("\n  Quadrature check")
        for d in dates:
            t = time.t(d)
            price = quadrature.price_term_vol(t, strike, lambda u: np.sqrt(variance(u) / u), 1.0) * cash.zc(d)
            mc = result.details[PaymentInfo("EUR", d)].value
            print(f"  {d.isoformat()}  quadrature {price:>12.4f}  mc {mc:>12.4f}")

        return 0

    except FileNotFoundError as e:
        print(f"\nERROR: {e}")
        return 1

    except (ValidationError, QuantError) as e:
        print(f"\nERROR: {type(e).__name__}: {e}")
        if args.verbose:
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
