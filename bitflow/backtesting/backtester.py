"""
Backtester for BitFlow

Replays a price series through a FLAT/LONG state machine:
1. FLAT -> LONG on a momentum tick (close > previous close)
2. TP/SL from the dynamic exit levels on the trailing ``base_length`` bars
3. Kelly sizing from the last ``eval_period`` trades of the run
4. LONG -> FLAT on take profit, stop loss or momentum loss (in that order)
5. Performance metrics over the closed trades

Entries are deliberately decoupled from the live scoring engine so
parameter search stays fast and indicator-light.
"""

import logging
import math
from dataclasses import dataclass, asdict
from typing import Dict, Iterable, List, Optional, Union

import numpy as np
import pandas as pd

from config.settings import (
    BACKTEST_WARMUP_BARS,
    DAILY_RISK_FREE_RATE,
    FEE_RATE,
    INITIAL_BALANCE,
)
from bitflow.agents.adaptive_controller import AdaptiveParameters
from bitflow.agents.regime_detector import RegimeDetector
from bitflow.data.bars import PriceSeries
from bitflow.exceptions import InvalidInputError
from bitflow.execution.exit_levels import compute_exit_levels
from bitflow.execution.position_sizer import PositionSizer
from bitflow.indicators.oscillators import rsi
from bitflow.utils.trade_tracker import TradeHistory, TradeRecord, summarize_trade_stats, trade_outcomes
from .metrics import PerformanceMetrics, calculate_metrics, equity_curve, format_metrics_report

logger = logging.getLogger(__name__)

EXIT_TAKE_PROFIT = 'Take Profit Hit'
EXIT_STOP_LOSS = 'Stop Loss Hit'
EXIT_MOMENTUM_LOSS = 'Momentum Loss'
EXIT_END_OF_TEST = 'End of Test'


@dataclass(frozen=True)
class BacktestParams:
    """One candidate parameter set"""
    base_length: int = 20        # Bars used for the TP/SL volatility window
    eval_period: int = 14        # Trades used for sizing statistics
    rsi_period: int = 14
    rsi_buy_min: float = 50.0
    rsi_buy_max: float = 65.0
    rsi_sell_min: float = 35.0
    rsi_sell_max: float = 45.0

    def __post_init__(self):
        if self.base_length < 2:
            raise InvalidInputError(f"base_length must be >= 2, got {self.base_length}")
        if self.eval_period < 1:
            raise InvalidInputError(f"eval_period must be >= 1, got {self.eval_period}")
        if self.rsi_period < 2:
            raise InvalidInputError(f"rsi_period must be >= 2, got {self.rsi_period}")

    def to_dict(self) -> Dict:
        return asdict(self)

    def to_adaptive_parameters(self, current: Optional[AdaptiveParameters] = None) -> AdaptiveParameters:
        """
        Map this candidate onto the live engine's parameters

        The slow MA follows ``base_length`` (16-30), the fast MA half of it
        (at most 15). The confidence threshold is kept from ``current``.
        """
        current = current or AdaptiveParameters()
        slow = min(30, max(16, self.base_length))
        fast = min(15, max(2, self.base_length // 2))
        return AdaptiveParameters(
            rsi_period=self.rsi_period,
            ma_fast_period=fast,
            ma_slow_period=slow,
            confidence_threshold=current.confidence_threshold,
        )


@dataclass
class BacktestConfig:
    """Backtesting configuration"""
    initial_balance: float = INITIAL_BALANCE
    warmup_bars: int = BACKTEST_WARMUP_BARS
    fee_rate: float = FEE_RATE               # Charged on entry and exit notional
    risk_free_rate: float = DAILY_RISK_FREE_RATE
    close_at_end: bool = False               # Close an open position on the last bar
    use_rsi_filter: bool = False             # Only enter with RSI inside the buy band


@dataclass
class BacktestResult:
    """Complete backtest results"""
    params: BacktestParams
    config: BacktestConfig
    trades: List[TradeRecord]
    metrics: PerformanceMetrics
    equity_curve: np.ndarray
    open_position: Optional[Dict] = None
    entries: int = 0
    rejected_records: int = 0

    def __str__(self):
        return format_metrics_report(self.metrics)


def exit_reason(
    entry_price: float,
    price: float,
    prev_price: float,
    take_profit_percent: float,
    stop_loss_percent: float,
) -> Optional[str]:
    """
    Exit rule for an open long position

    Take profit is checked before stop loss, stop loss before momentum
    loss; the first match is the only reason reported.
    """
    return_pct = (price - entry_price) / entry_price * 100
    if return_pct >= take_profit_percent:
        return EXIT_TAKE_PROFIT
    if return_pct <= -stop_loss_percent:
        return EXIT_STOP_LOSS
    if price < prev_price and return_pct <= 0:
        return EXIT_MOMENTUM_LOSS
    return None


def as_price_series(data: Union[PriceSeries, Iterable[float]]) -> PriceSeries:
    if isinstance(data, PriceSeries):
        return data
    return PriceSeries.from_closes(data)


class Backtester:
    """
    Historical strategy backtester

    Usage:
        backtester = Backtester(config)
        result = backtester.run(series, BacktestParams(base_length=20, eval_period=14))
        print(result)
    """

    def __init__(
        self,
        config: BacktestConfig = None,
        sizer: Optional[PositionSizer] = None,
        regime_detector: Optional[RegimeDetector] = None,
    ):
        self.config = config or BacktestConfig()
        self.sizer = sizer or PositionSizer()
        self.regime_detector = regime_detector or RegimeDetector()

    def run(
        self,
        series: Union[PriceSeries, Iterable[float]],
        params: Optional[BacktestParams] = None,
    ) -> BacktestResult:
        """
        Run the state machine over the whole series

        Args:
            series: Price series (or plain closes) to replay
            params: Candidate parameters (defaults if None)

        Returns:
            BacktestResult with trades, metrics and equity curve
        """
        series = as_price_series(series)
        params = params or BacktestParams()
        cfg = self.config

        closes = series.closes
        n = len(closes)

        rsi_values = None
        if cfg.use_rsi_filter:
            rsi_values = rsi(pd.Series(closes), params.rsi_period).to_numpy()

        history = TradeHistory()
        balance = cfg.initial_balance
        position = None
        entries = 0
        rejected = 0

        for i in range(max(cfg.warmup_bars, 1), n):
            price = closes[i]

            if position is None:
                if not price > closes[i - 1]:
                    continue
                if rsi_values is not None:
                    rsi_value = rsi_values[i]
                    if not (math.isfinite(rsi_value) and params.rsi_buy_min < rsi_value < params.rsi_buy_max):
                        continue

                position = self._open_position(series, i, price, balance, params, history)
                entries += 1
                balance -= position['entry_fee']
                continue

            reason = exit_reason(
                position['entry_price'], price, closes[i - 1],
                position['take_profit_percent'], position['stop_loss_percent'],
            )
            if reason is None:
                continue

            accepted, pnl = self._close_position(position, i, price, reason, series.symbol, history)
            balance += pnl
            if not accepted:
                rejected += 1
            position = None

        if position is not None and cfg.close_at_end and n - 1 > position['entry_index']:
            accepted, pnl = self._close_position(position, n - 1, closes[-1], EXIT_END_OF_TEST, series.symbol, history)
            balance += pnl
            if not accepted:
                rejected += 1
            position = None

        trades = list(history.records)
        metrics = calculate_metrics(trades, cfg.initial_balance, cfg.risk_free_rate)

        logger.debug(
            f"[BACKTEST] {series.symbol} base={params.base_length} eval={params.eval_period}: "
            f"{metrics.total_trades} trades, pnl={metrics.total_pnl:+.2f}, sharpe={metrics.sharpe_ratio:.3f}"
        )

        return BacktestResult(
            params=params,
            config=cfg,
            trades=trades,
            metrics=metrics,
            equity_curve=equity_curve(trades, cfg.initial_balance),
            open_position=position,
            entries=entries,
            rejected_records=rejected,
        )

    def _open_position(
        self,
        series: PriceSeries,
        idx: int,
        price: float,
        balance: float,
        params: BacktestParams,
        history: TradeHistory,
    ) -> Dict:
        """Size the entry and fix its TP/SL"""
        window = series.head(idx + 1).tail(params.base_length)
        regime = self.regime_detector.detect(series.closes[:idx + 1])

        recent = history.recent(params.eval_period)
        stats = summarize_trade_stats(recent)

        levels = compute_exit_levels(window, price, regime, stats.win_rate)
        sizing = self.sizer.size_position(
            balance, price, stats.win_rate, stats.avg_win, stats.avg_loss, trade_outcomes(recent),
        )

        logger.debug(
            f"[BACKTEST] ENTRY @{idx} price={price:.4f} qty={sizing.quantity:.6f} "
            f"TP={levels.take_profit_percent:.2f}% SL={levels.stop_loss_percent:.2f}% ({regime.value})"
        )

        return {
            'entry_index': idx,
            'entry_price': price,
            'quantity': sizing.quantity,
            'take_profit_percent': levels.take_profit_percent,
            'stop_loss_percent': levels.stop_loss_percent,
            'signal_confidence': sizing.confidence,
            'market_regime': regime.value,
            'entry_fee': sizing.quantity * price * self.config.fee_rate,
        }

    def _close_position(
        self,
        position: Dict,
        idx: int,
        price: float,
        reason: str,
        symbol: str,
        history: TradeHistory,
    ) -> tuple:
        """
        Close the position and append its record to the run history

        Returns:
            (accepted, pnl) where pnl is net of exit fees
        """
        quantity = position['quantity']
        entry_price = position['entry_price']
        exit_fee = quantity * price * self.config.fee_rate
        pnl = (price - entry_price) * quantity - position['entry_fee'] - exit_fee

        accepted = history.append({
            'symbol': symbol,
            'entry_index': position['entry_index'],
            'entry_price': entry_price,
            'exit_index': idx,
            'exit_price': price,
            'quantity': quantity,
            'pnl': pnl,
            'pnl_percent': (price - entry_price) / entry_price * 100,
            'exit_reason': reason,
            'take_profit_percent': position['take_profit_percent'],
            'stop_loss_percent': position['stop_loss_percent'],
            'signal_confidence': position['signal_confidence'],
            'market_regime': position['market_regime'],
        })

        logger.debug(f"[BACKTEST] EXIT @{idx} price={price:.4f} pnl={pnl:+.4f} ({reason})")

        # Only the exit leg is returned; the entry fee was charged at entry
        return accepted, pnl + position['entry_fee']


def run_backtest(
    series: Union[PriceSeries, Iterable[float]],
    params: Optional[BacktestParams] = None,
    config: Optional[BacktestConfig] = None,
) -> PerformanceMetrics:
    """Run one backtest and return only its metrics"""
    return Backtester(config).run(series, params).metrics
