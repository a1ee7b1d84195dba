"""
Random-search parameter optimizer

Draws candidate BacktestParams from an injectable numpy Generator,
backtests each one and keeps the best Sharpe ratio.

- All candidates are drawn up front, so the result does not depend on
  the order in which trials finish
- Trials can run on a thread pool (``max_workers``)
- A threading.Event cancels not-yet-started trials; the best completed
  candidate is still returned

Usage:
    from bitflow.backtesting import ParameterOptimizer

    result = ParameterOptimizer(max_workers=4).optimize(series, trials=30, seed=42)
    engine.apply_optimized(result.best_params)
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Union

import numpy as np

from config.settings import OPTIMIZER_MAX_WORKERS, OPTIMIZER_SEED, OPTIMIZER_TRIALS
from bitflow.data.bars import PriceSeries
from .backtester import BacktestConfig, BacktestParams, Backtester, as_price_series
from .metrics import PerformanceMetrics

logger = logging.getLogger(__name__)

# Half-open sampling ranges [low, high)
BASE_LENGTH_RANGE = (10, 30)
EVAL_PERIOD_RANGE = (10, 20)
RSI_BUY_MIN_RANGE = (50.0, 60.0)
RSI_BUY_MAX_RANGE = (60.0, 70.0)
RSI_SELL_MIN_RANGE = (30.0, 40.0)
RSI_SELL_MAX_RANGE = (40.0, 50.0)


@dataclass
class TrialResult:
    """Outcome of one candidate"""
    index: int
    params: BacktestParams
    metrics: PerformanceMetrics

    @property
    def sharpe(self) -> float:
        return self.metrics.sharpe_ratio


@dataclass
class OptimizationResult:
    """Best candidate found by the search"""
    best_params: Optional[BacktestParams]
    best_metrics: Optional[PerformanceMetrics]
    trials_completed: int
    cancelled: bool = False
    trials: List[TrialResult] = field(default_factory=list)
    best_index: Optional[int] = None

    def summary(self) -> str:
        if self.best_params is None:
            return f"No completed trials (cancelled={self.cancelled})"
        return (
            f"Best trial #{self.best_index} of {self.trials_completed}: "
            f"base_length={self.best_params.base_length}, eval_period={self.best_params.eval_period}, "
            f"sharpe={self.best_metrics.sharpe_ratio:.3f}, pnl={self.best_metrics.total_pnl:+.2f}"
            + (" (cancelled)" if self.cancelled else "")
        )


def sample_params(rng: np.random.Generator) -> BacktestParams:
    """Draw one candidate from the search space"""
    return BacktestParams(
        base_length=int(rng.integers(*BASE_LENGTH_RANGE)),
        eval_period=int(rng.integers(*EVAL_PERIOD_RANGE)),
        rsi_buy_min=float(rng.uniform(*RSI_BUY_MIN_RANGE)),
        rsi_buy_max=float(rng.uniform(*RSI_BUY_MAX_RANGE)),
        rsi_sell_min=float(rng.uniform(*RSI_SELL_MIN_RANGE)),
        rsi_sell_max=float(rng.uniform(*RSI_SELL_MAX_RANGE)),
    )


def select_best(results: Iterable[TrialResult]) -> Optional[TrialResult]:
    """Highest Sharpe; ties go to the lowest trial index"""
    best = None
    for result in results:
        if best is None or (result.sharpe, -result.index) > (best.sharpe, -best.index):
            best = result
    return best


class ParameterOptimizer:
    """Random search over BacktestParams, ranked by Sharpe ratio"""

    def __init__(
        self,
        config: Optional[BacktestConfig] = None,
        max_workers: int = OPTIMIZER_MAX_WORKERS,
    ):
        self.config = config or BacktestConfig()
        self.max_workers = max(1, int(max_workers))

    def _run_trial(
        self,
        index: int,
        series: PriceSeries,
        params: BacktestParams,
        cancel_event: threading.Event,
    ) -> Optional[TrialResult]:
        if cancel_event.is_set():
            return None
        metrics = Backtester(self.config).run(series, params).metrics
        logger.debug(
            f"[OPTIMIZER] Trial {index + 1}: base={params.base_length} eval={params.eval_period} "
            f"-> sharpe={metrics.sharpe_ratio:.3f}, trades={metrics.total_trades}"
        )
        return TrialResult(index, params, metrics)

    def optimize(
        self,
        series: Union[PriceSeries, Iterable[float]],
        trials: int = OPTIMIZER_TRIALS,
        seed: Optional[int] = None,
        rng: Optional[np.random.Generator] = None,
        cancel_event: Optional[threading.Event] = None,
        on_trial: Optional[Callable[[TrialResult], None]] = None,
    ) -> OptimizationResult:
        """
        Search ``trials`` random candidates

        Args:
            series: Price series shared (read-only) by every trial
            trials: Number of candidates to draw
            seed: Seed for a fresh ``numpy.random.default_rng`` (ignored if ``rng`` given)
            rng: Injected generator
            cancel_event: Set to skip trials that have not started yet
            on_trial: Called with each completed TrialResult

        Returns:
            OptimizationResult with the best completed candidate
        """
        series = as_price_series(series)
        if rng is None:
            rng = np.random.default_rng(seed if seed is not None else _default_seed())
        cancel_event = cancel_event or threading.Event()

        candidates = [sample_params(rng) for _ in range(max(0, trials))]
        logger.info(f"[OPTIMIZER] {len(candidates)} trials on {len(series)} bars ({self.max_workers} workers)")

        completed: List[TrialResult] = []

        if self.max_workers == 1:
            for index, params in enumerate(candidates):
                result = self._run_trial(index, series, params, cancel_event)
                if result is None:
                    break
                completed.append(result)
                if on_trial:
                    on_trial(result)
        else:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                futures = [
                    executor.submit(self._run_trial, index, series, params, cancel_event)
                    for index, params in enumerate(candidates)
                ]
                for future in futures:
                    result = future.result()
                    if result is None:
                        continue
                    completed.append(result)
                    if on_trial:
                        on_trial(result)

        completed.sort(key=lambda r: r.index)
        best = select_best(completed)
        cancelled = cancel_event.is_set() and len(completed) < len(candidates)

        outcome = OptimizationResult(
            best_params=best.params if best else None,
            best_metrics=best.metrics if best else None,
            trials_completed=len(completed),
            cancelled=cancelled,
            trials=completed,
            best_index=best.index if best else None,
        )
        logger.info(f"[OPTIMIZER] {outcome.summary()}")
        return outcome


def _default_seed() -> Optional[int]:
    return int(OPTIMIZER_SEED) if OPTIMIZER_SEED is not None else None


def optimize(
    series: Union[PriceSeries, Iterable[float]],
    trials: int = OPTIMIZER_TRIALS,
    seed: Optional[int] = None,
    max_workers: int = OPTIMIZER_MAX_WORKERS,
    config: Optional[BacktestConfig] = None,
    cancel_event: Optional[threading.Event] = None,
) -> OptimizationResult:
    """Convenience wrapper around ParameterOptimizer.optimize"""
    return ParameterOptimizer(config, max_workers).optimize(
        series, trials=trials, seed=seed, cancel_event=cancel_event,
    )
