#!/usr/bin/env python3
"""
Flowcap Yield Simulation - Main Entry Point

Command-line access to the lending and LP Monte Carlo simulations and to a
single reallocation scan over demo pools. Market history comes from the
seeded synthetic data source; reports say so.
"""

import argparse
import json
import sys
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List

from flowcap_sim.agents.position_store import PositionStore
from flowcap_sim.agents.reallocation_agent import (
    DEFAULT_POSITION_ID, ExecutionCollaborator, ReallocationAgent
)
from flowcap_sim.analysis.distribution_charts import DistributionChartGenerator
from flowcap_sim.analysis.results_manager import ResultsManager, RunMetadata
from flowcap_sim.core.interest_rates import InterestRateResolver, describe_model, supply_apy
from flowcap_sim.core.lp_math import analyze_lp_position
from flowcap_sim.core.models import (
    ExogenousParams, LogReturnParameters, PlanStep, PoolDescriptor, PoolType, Position, StepResult
)
from flowcap_sim.data.estimators import (
    assess_bad_debt_risk, estimate_bad_debt, estimate_log_return_parameters, estimate_utilization
)
from flowcap_sim.data.synthetic import SyntheticHistoricalDataSource
from flowcap_sim.engine.config import StrategyConfig
from flowcap_sim.engine.pool_analyzer import PoolAnalyzer
from flowcap_sim.engine.scanner import ScanCycle, StaticPoolProvider
from flowcap_sim.exceptions import FlowcapError
from flowcap_sim.simulation.monte_carlo import LendingMonteCarloSimulator, LPMonteCarloSimulator
from flowcap_sim.utils.logging import setup_logging

DATA_SOURCE_LABEL = "synthetic (seeded demo data, not live market history)"


class DryRunCollaborator(ExecutionCollaborator):
    """Prints each step and reports success without submitting anything"""

    def execute_step(self, step: PlanStep) -> StepResult:
        print(f"  [dry-run] {step.step_type.value:8s} {step.protocol:12s} {step.target} "
              f"{step.token or ''} {step.amount if step.amount is not None else ''}")
        return StepResult(success=True)


def demo_pools() -> List[PoolDescriptor]:
    return [
        PoolDescriptor("venus-usdt", "venus", ["USDT"], PoolType.LENDING),
        PoolDescriptor("venus-usdc", "venus", ["USDC"], PoolType.LENDING),
        PoolDescriptor("venus-bnb", "venus", ["BNB"], PoolType.LENDING),
        PoolDescriptor("aave-usdt", "aave", ["USDT"], PoolType.LENDING),
        PoolDescriptor(
            "pancakeswap-usdt-wbnb", "pancakeswap", ["USDT", "WBNB"], PoolType.LP, "v2",
            ExogenousParams(volume_24h=4_000_000, tvl_lp=40_000_000, pair_weight_ratio=0.01,
                            reward_token_price=2.5, tvl_staked=30_000_000),
        ),
        PoolDescriptor(
            "pancakeswap-cake-wbnb", "pancakeswap", ["CAKE", "WBNB"], PoolType.LP, "v2",
            ExogenousParams(volume_24h=2_500_000, tvl_lp=25_000_000, pair_weight_ratio=0.04,
                            reward_token_price=2.5, tvl_staked=20_000_000),
        ),
    ]


def main(argv=None):
    """Main entry point with command-line interface"""

    parser = argparse.ArgumentParser(
        description="Flowcap Yield Simulation & Reallocation Engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m flowcap_sim.main lending --protocol venus --asset USDT --amount 1000 --days 30
  python -m flowcap_sim.main lending --protocol venus --asset BNB --harvest-days 7 --save --charts
  python -m flowcap_sim.main lp --pair CAKE-WBNB --amount 1000 --volume-24h 2500000 --tvl 25000000 \\
      --staked-tvl 20000000 --pair-weight 0.04 --reward-price 2.5
  python -m flowcap_sim.main scan --risk-profile medium --amount 5000 --current-pool venus-usdc \\
      --current-apy 2.0 --days-held 10
  python -m flowcap_sim.main list-results lending
        """
    )
    parser.add_argument("--seed", type=int, default=42, help="RNG seed (default: 42)")
    parser.add_argument("--log-level", default="WARNING", help="Log level (default: WARNING)")
    parser.add_argument("--results-dir", default="results", help="Results directory (default: results)")
    subparsers = parser.add_subparsers(dest="command")

    lending = subparsers.add_parser("lending", help="Simulate a lending supply position")
    lending.add_argument("--protocol", default="venus")
    lending.add_argument("--asset", default="USDT")
    _add_common_simulation_args(lending)
    lending.add_argument("--harvest-days", type=float, default=None,
                         help="Fixed harvest cadence in days (optimised when omitted)")

    lp = subparsers.add_parser("lp", help="Simulate a farmed liquidity-pool position")
    lp.add_argument("--pair", default="CAKE-WBNB", help="Pair as TOKEN0-TOKEN1")
    _add_common_simulation_args(lp)
    lp.add_argument("--volume-24h", type=float, required=True)
    lp.add_argument("--tvl", type=float, required=True)
    lp.add_argument("--staked-tvl", type=float, default=0.0)
    lp.add_argument("--pair-weight", type=float, default=0.0)
    lp.add_argument("--reward-price", type=float, default=0.0)
    lp.add_argument("--gas-price", type=float, default=3.0, help="Gas price in gwei")
    lp.add_argument("--native-price", type=float, default=600.0)
    lp.add_argument("--mu", type=float, default=None, help="Daily log-return drift (estimated when omitted)")
    lp.add_argument("--sigma", type=float, default=None, help="Daily log-return volatility")
    lp.add_argument("--harvest-hours", type=float, default=None)

    scan = subparsers.add_parser("scan", help="Run one reallocation scan over demo pools")
    scan.add_argument("--risk-profile", choices=["low", "medium", "high"], default="medium")
    scan.add_argument("--amount", type=float, default=1000.0)
    scan.add_argument("--current-pool", default=None, help="Pool id currently held")
    scan.add_argument("--current-apy", type=float, default=0.0)
    scan.add_argument("--days-held", type=float, default=30.0)
    scan.add_argument("--simulations", type=int, default=200)
    scan.add_argument("--execute-dry-run", action="store_true",
                      help="Pass the plan to a dry-run executor that only prints steps")
    scan.add_argument("--json", action="store_true", help="Print the scan result as JSON")

    listing = subparsers.add_parser("list-results", help="List saved runs for a product type")
    listing.add_argument("product_type", choices=["lending", "lp"])

    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1

    setup_logging(args.log_level)

    try:
        if args.command == "lending":
            return run_lending(args)
        if args.command == "lp":
            return run_lp(args)
        if args.command == "scan":
            return run_scan(args)
        if args.command == "list-results":
            return list_results(args)
    except FlowcapError as e:
        print(f"Error: {e}")
        return 1
    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        return 1
    return 0


def _add_common_simulation_args(subparser):
    subparser.add_argument("--amount", type=float, default=1000.0, help="Initial capital in USD")
    subparser.add_argument("--days", type=float, default=30, help="Holding period in days")
    subparser.add_argument("--simulations", type=int, default=1000)
    subparser.add_argument("--save", action="store_true", help="Persist results to the results directory")
    subparser.add_argument("--charts", action="store_true", help="Render charts (implies --save)")
    subparser.add_argument("--json", action="store_true", help="Print the result as JSON")


def run_lending(args) -> int:
    source = SyntheticHistoricalDataSource(seed=args.seed)
    resolved = InterestRateResolver().resolve(args.protocol, args.asset)
    utilization = estimate_utilization(source.utilization_series(args.protocol, args.asset, 30))
    risk_level = assess_bad_debt_risk(args.protocol, args.asset)
    events = source.bad_debt_events(args.protocol, args.asset, 365)
    bad_debt = estimate_bad_debt(risk_level, 365, args.amount, events)

    start = time.time()
    result = LendingMonteCarloSimulator(seed=args.seed).run(
        args.amount, args.days, resolved.model, utilization, bad_debt,
        num_simulations=args.simulations, harvest_days=args.harvest_days,
    )
    elapsed = time.time() - start

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(f"Lending Simulation: {args.protocol} {args.asset}")
        print("=" * 60)
        print(f"Data source:        {DATA_SOURCE_LABEL}")
        print(f"Rate model:         {describe_model(resolved.model)} [{resolved.provenance.value}]")
        print(f"Utilization:        mean {utilization.mean:.2%}, std {utilization.std:.2%}")
        print(f"Point supply APY:   {supply_apy(utilization.mean, resolved.model) * 100:.2f}%")
        print(f"Bad debt:           {risk_level.value} risk, {bad_debt.events_per_year:.2f} events/yr")
        _print_result(result)
        extra = result.extra_metrics
        print(f"Annualized APY:     {extra['annualized_apy']:.2f}% (compound)")
        print(f"Harvest every:      {extra['optimal_harvest_frequency_days']:g} days")
        print(f"Total gas:          ${extra['total_gas_cost']:.2f}")
        print(f"Max drawdown:       ${extra['max_drawdown']:.2f}")

    _persist(args, "lending", result, elapsed, {
        "protocol": args.protocol, "asset": args.asset, "amount": args.amount,
        "days": args.days, "simulations": args.simulations,
    }, {"utilization_mean": utilization.mean, "bad_debt_events_per_year": bad_debt.events_per_year})
    return 0


def run_lp(args) -> int:
    assets = [a.strip().upper() for a in args.pair.split("-")]
    if len(assets) != 2:
        print(f"Error: pair must look like TOKEN0-TOKEN1, got {args.pair}")
        return 1

    market = ExogenousParams(
        volume_24h=args.volume_24h, tvl_lp=args.tvl, pair_weight_ratio=args.pair_weight,
        reward_token_price=args.reward_price, tvl_staked=args.staked_tvl,
        gas_price_gwei=args.gas_price, native_price=args.native_price,
    )
    pool = PoolDescriptor(f"pancakeswap-{'-'.join(assets).lower()}", "pancakeswap", assets, PoolType.LP, "v2", market)
    point = analyze_lp_position(pool, args.amount, args.days)

    if args.mu is not None and args.sigma is not None:
        log_params = LogReturnParameters(args.mu, args.sigma, args.mu * 365, args.sigma * 365 ** 0.5, 0)
    else:
        source = SyntheticHistoricalDataSource(seed=args.seed)
        log_params = estimate_log_return_parameters(source.price_ratio_series(assets[0], assets[1], 30))

    start = time.time()
    result = LPMonteCarloSimulator(seed=args.seed).run(
        args.amount, point.total_apy, args.days, log_params, market,
        num_simulations=args.simulations, harvest_hours=args.harvest_hours,
    )
    elapsed = time.time() - start

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(f"LP Simulation: {'/'.join(assets)} on PancakeSwap V2")
        print("=" * 60)
        print(f"Price history:      {DATA_SOURCE_LABEL if args.mu is None else 'user supplied'}")
        print(f"Trading fee APY:    {point.trading_fee_apy:.2f}%")
        print(f"Farming APY:        {point.farming_apy:.2f}%")
        print(f"Total APY:          {point.total_apy:.2f}%")
        print(f"Optimal harvest:    every {point.optimal_harvest_hours:g}h")
        print(f"Break-even:         {point.break_even_days:.1f} days")
        print(f"Risk:               {point.risk.level} ({point.risk.score:.0f}/100)")
        print(f"Recommendation:     {point.recommendation}")
        print("\nPrice sensitivity:")
        for row in point.sensitivity:
            print(f"  r={row['price_ratio']:.2f}  IL {row['impermanent_loss_pct']:.2f}%  "
                  f"final ${row['final_value']:,.2f}  return {row['total_return_pct']:+.2f}%")
        print()
        _print_result(result)
        print(f"Annualized APY:     {result.extra_metrics['annualized_apy']:.2f}% (simple)")

    _persist(args, "lp", result, elapsed, {
        "pair": args.pair, "amount": args.amount, "days": args.days,
        "simulations": args.simulations, "daily_mu": log_params.daily_mu,
        "daily_sigma": log_params.daily_sigma,
    }, {"volume_24h": args.volume_24h, "tvl_lp": args.tvl, "tvl_staked": args.staked_tvl})
    return 0


def run_scan(args) -> int:
    config = StrategyConfig(risk_profile=args.risk_profile)
    config.lending_simulations = args.simulations
    config.lp_simulations = args.simulations
    config.auto_enter = args.current_pool is None

    pools = demo_pools()
    store = PositionStore()
    now = datetime.now(timezone.utc)
    account_id = "cli"

    if args.current_pool:
        held = next((p for p in pools if p.pool_id == args.current_pool), None)
        if held is None:
            print(f"Error: unknown pool {args.current_pool}")
            return 1
        store.put(account_id, Position(
            position_id=DEFAULT_POSITION_ID, pool_id=held.pool_id, protocol=held.protocol,
            asset=held.primary_asset, apy=args.current_apy,
            entry_date=now - timedelta(days=args.days_held), amount=args.amount,
        ))

    source = SyntheticHistoricalDataSource(seed=args.seed)
    cycle = ScanCycle(
        StaticPoolProvider(pools),
        PoolAnalyzer(source, config),
        ReallocationAgent(store, config),
        config,
        collaborator=DryRunCollaborator() if args.execute_dry_run else None,
        seed=args.seed,
    )
    result = cycle.run_once(account_id, entry_amount=args.amount, now=now)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2, default=str))
        return 0 if result.action.value != "error" else 1

    print(f"Reallocation Scan ({args.risk_profile} risk profile)")
    print("=" * 60)
    print(f"Data source: {DATA_SOURCE_LABEL}")
    for rank, row in enumerate(result.details.get("ranking", []), 1):
        simulated = row["simulated_apy"]
        print(f"{rank:2d}. {row['pool_id']:24s} {row['apy']:7.2f}% APY"
              + (f"  (simulated {simulated:.2f}%)" if simulated is not None else ""))
    for pool_id, error in result.details.get("failures", {}).items():
        print(f"    excluded {pool_id}: {error}")
    print(f"\nAction: {result.action.value}")
    print(f"Reason: {result.details.get('reason')}")
    if "plan" in result.details:
        print(f"Plan:   {' -> '.join(result.details['plan'])}")
    return 0 if result.action.value != "error" else 1


def list_results(args) -> int:
    runs = ResultsManager(args.results_dir).list_runs(args.product_type)
    if not runs:
        print(f"No saved {args.product_type} runs in {args.results_dir}")
        return 0
    print(f"Saved {args.product_type} runs:")
    for run in runs:
        print(f"  {run['run_dir']}  seed={run.get('seed')}  {run.get('execution_time', 0):.2f}s")
    return 0


def _print_result(result):
    print(f"Simulations:        {result.num_simulations}")
    print(f"Mean final value:   ${result.mean:,.2f}")
    print(f"Median:             ${result.median:,.2f}")
    print(f"P5 / P95:           ${result.percentile_5:,.2f} / ${result.percentile_95:,.2f}")
    print(f"Probability of loss:{result.probability_of_loss:8.2%}")
    print(f"VaR (5%):           ${result.value_at_risk_5:,.2f}")
    print(f"Sharpe ratio:       {result.sharpe_ratio:.3f}")


def _persist(args, product_type, result, elapsed, parameters, market_conditions):
    if not (args.save or args.charts):
        return
    manager = ResultsManager(args.results_dir)
    run_dir = manager.create_run_directory(product_type)
    metadata = RunMetadata(
        run_id=run_dir.name,
        product_type=product_type,
        timestamp=datetime.now(timezone.utc).isoformat(),
        parameters=parameters,
        execution_time=elapsed,
        seed=args.seed,
        data_source=DATA_SOURCE_LABEL,
    )
    manager.save_results(run_dir, result, metadata, context={"market_conditions": market_conditions})
    manager.save_summary_report(run_dir, result, metadata)
    if args.charts:
        charts_dir = Path(run_dir) / "charts"
        generator = DistributionChartGenerator()
        generator.outcome_distribution(result, charts_dir)
        comparison = {
            float(key[len("harvest_"):-len("d_mean_return")]): value
            for key, value in result.extra_metrics.items()
            if key.startswith("harvest_") and key.endswith("d_mean_return")
        }
        generator.harvest_comparison(comparison, charts_dir)
    print(f"\nResults saved to {run_dir}", file=sys.stderr if args.json else sys.stdout)


if __name__ == "__main__":
    sys.exit(main())
