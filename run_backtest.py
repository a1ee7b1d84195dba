#!/usr/bin/env python
"""
BitFlow offline replay

Loads OHLCV bars (CSV or synthetic), optimises the backtest parameters by
random search, replays the best candidate and evaluates the live signal
engine on the latest bar.

Usage:
    python run_backtest.py                          # 1000 synthetic bars
    python run_backtest.py --csv data/btc_5m.csv    # date,open,high,low,close,volume
    python run_backtest.py --trials 50 --seed 7 --workers 4
"""

import argparse
import sys

import pandas as pd

from config.settings import INITIAL_BALANCE, OPTIMIZER_MAX_WORKERS, OPTIMIZER_TRIALS
from bitflow.agents import SignalEngine
from bitflow.backtesting import BacktestConfig, Backtester, ParameterOptimizer
from bitflow.data import PriceSeries, generate_synthetic_bars
from bitflow.exceptions import InvalidInputError
from bitflow.utils.logger import setup_logger

logger = setup_logger('bitflow')


def load_series(args) -> PriceSeries:
    """CSV file if given, otherwise a synthetic random walk"""
    if args.csv:
        df = pd.read_csv(args.csv)
        for column in ('date', 'time', 'timestamp'):
            if column in df.columns:
                df[column] = pd.to_datetime(df[column])
                df = df.set_index(column)
                break
        return PriceSeries.from_frame(df, symbol=args.symbol, timeframe=args.timeframe)
    return generate_synthetic_bars(periods=args.bars, seed=args.seed, symbol=args.symbol)


def main():
    parser = argparse.ArgumentParser(description='BitFlow offline replay')
    parser.add_argument('--csv', type=str, help='OHLCV CSV file')
    parser.add_argument('--symbol', type=str, default='BTC/USD')
    parser.add_argument('--timeframe', type=str, default='5Min')
    parser.add_argument('--bars', type=int, default=1000, help='Synthetic bars when no CSV is given')
    parser.add_argument('--trials', type=int, default=OPTIMIZER_TRIALS)
    parser.add_argument('--seed', type=int, default=None)
    parser.add_argument('--workers', type=int, default=OPTIMIZER_MAX_WORKERS)
    parser.add_argument('--balance', type=float, default=INITIAL_BALANCE)
    parser.add_argument('--fee', type=float, default=0.0, help='Fee rate per side, e.g. 0.001')
    args = parser.parse_args()

    try:
        series = load_series(args)
    except (InvalidInputError, OSError) as e:
        logger.error(f"Could not load bars: {e}")
        return 1

    logger.info(f"Loaded {series}")

    config = BacktestConfig(initial_balance=args.balance, fee_rate=args.fee, close_at_end=True)
    result = ParameterOptimizer(config, max_workers=args.workers).optimize(
        series, trials=args.trials, seed=args.seed,
    )
    if result.best_params is None:
        logger.warning("No trial completed")
        return 1

    replay = Backtester(config).run(series, result.best_params)
    print(replay)

    engine = SignalEngine(symbol=args.symbol)
    engine.apply_optimized(result.best_params)
    signal = engine.evaluate(series, history=replay.trades)
    decision = signal.signal.value if signal.signal else 'HOLD'
    print(f"Latest bar: {decision} (confidence {signal.confidence:.2f})")
    for reason in signal.reasons:
        print(f"  - {reason}")

    if signal.signal is not None:
        price = series.closes[-1]
        sizing = engine.size_position(replay.metrics.final_capital, price, replay.trades)
        levels = engine.exit_levels(
            series.tail(result.best_params.base_length), price, replay.trades, regime=signal.market_regime,
        )
        print(f"  Size: {sizing.quantity:.6f} ({sizing.reasoning})")
        print(f"  TP {levels.take_profit_percent:.2f}% / SL {levels.stop_loss_percent:.2f}%")

    return 0


if __name__ == '__main__':
    sys.exit(main())
