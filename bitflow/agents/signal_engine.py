"""
Signal Engine - wires the indicator layer, regime detector, risk assessor,
scorer, adaptive controller, sizing and exit levels into one object.

The engine owns the AdaptiveParameters. Trade history is injected
read-only; the controller adapts the parameters from it before each
evaluation. External collaborators (directional signal provider, news
provider) are awaited in :meth:`SignalEngine.evaluate_async` and any
failure is treated as neutral input.
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, Union

from config.settings import ADAPTIVE_WINDOW
from bitflow.data.bars import PriceSeries
from bitflow.exceptions import ExternalCollaboratorError
from bitflow.execution.exit_levels import ExitLevels, compute_exit_levels
from bitflow.execution.position_sizer import PositionSizer, PositionSizing
from bitflow.indicators.snapshot import compute_snapshot
from bitflow.utils.trade_tracker import TradeRecord, profit_factor, summarize_trade_stats, trade_outcomes
from .adaptive_controller import AdaptiveParameterController, AdaptiveParameters
from .regime_detector import MarketRegime, RegimeDetector
from .risk_assessor import RiskAssessor
from .signal_scorer import SignalResult, SignalScorer

logger = logging.getLogger(__name__)

Provider = Callable[[PriceSeries], Union[Any, Awaitable[Any]]]


class SignalEngine:
    """Adaptive signal engine for one instrument / timeframe"""

    def __init__(
        self,
        symbol: str = 'BTC/USD',
        parameters: Optional[AdaptiveParameters] = None,
        regime_detector: Optional[RegimeDetector] = None,
        risk_assessor: Optional[RiskAssessor] = None,
        scorer: Optional[SignalScorer] = None,
        controller: Optional[AdaptiveParameterController] = None,
        sizer: Optional[PositionSizer] = None,
        provider_timeout: float = 10.0,
    ):
        self.symbol = symbol
        self.regime_detector = regime_detector or RegimeDetector()
        self.risk_assessor = risk_assessor or RiskAssessor()
        self.scorer = scorer or SignalScorer()
        self.controller = controller or AdaptiveParameterController(parameters)
        if controller is not None and parameters is not None:
            self.controller.parameters = parameters
        self.sizer = sizer or PositionSizer()
        self.provider_timeout = provider_timeout

    @property
    def parameters(self) -> AdaptiveParameters:
        return self.controller.parameters

    # =========================================================================
    # EVALUATION
    # =========================================================================

    def evaluate(
        self,
        series: PriceSeries,
        history: Optional[Iterable[TradeRecord]] = None,
        external_signal: Optional[float] = None,
        news_text: Optional[str] = None,
        sentiment_score: Optional[float] = None,
    ) -> SignalResult:
        """
        Evaluate the most recent bar

        Args:
            series: Price window, most recent bar last
            history: Closed trades used to adapt parameters before scoring
            external_signal: Optional directional signal in [-1, 1]
            news_text: Optional news blob for the risk keyword scan
            sentiment_score: Optional pre-computed sentiment in [-1, 1]

        Returns:
            SignalResult (never raises for a valid series)
        """
        if not isinstance(series, PriceSeries):
            series = PriceSeries(series, symbol=self.symbol)

        if history is not None:
            self.controller.adapt(history)
        params = self.parameters

        regime = self.regime_detector.detect(series)
        risk = self.risk_assessor.assess(series, news_text=news_text, sentiment_score=sentiment_score)

        snapshot = None
        if len(series) >= self.scorer.min_bars:
            snapshot = compute_snapshot(
                series,
                rsi_period=params.rsi_period,
                ma_fast_period=params.ma_fast_period,
                ma_slow_period=params.ma_slow_period,
            )

        result = self.scorer.evaluate(
            series,
            snapshot,
            regime,
            risk,
            external_signal=external_signal,
            confidence_threshold=params.confidence_threshold,
        )

        decision = result.signal.value if result.signal else 'HOLD'
        logger.info(
            f"[ENGINE] {self.symbol} {decision} conf={result.confidence:.2f} "
            f"regime={regime.value} risk={risk.level.value} | {'; '.join(result.reasons) or 'no factors'}"
        )
        return result

    async def _call_provider(self, name: str, provider: Optional[Provider], series: PriceSeries) -> Any:
        """Call an external collaborator; any failure becomes neutral (None)"""
        if provider is None:
            return None
        try:
            value = provider(series)
            if inspect.isawaitable(value):
                value = await asyncio.wait_for(value, timeout=self.provider_timeout)
            return value
        except asyncio.TimeoutError:
            logger.warning(f"[ENGINE] {name} provider timed out after {self.provider_timeout}s, using neutral input")
        except ExternalCollaboratorError as e:
            logger.warning(f"[ENGINE] {name} provider reported unavailable: {e}, using neutral input")
        except Exception as e:
            logger.warning(f"[ENGINE] {name} provider failed: {e}, using neutral input")
        return None

    async def evaluate_async(
        self,
        series: PriceSeries,
        history: Optional[Iterable[TradeRecord]] = None,
        signal_provider: Optional[Provider] = None,
        news_provider: Optional[Provider] = None,
    ) -> SignalResult:
        """
        Fetch external inputs concurrently, then evaluate

        ``signal_provider`` should return a directional value in [-1, 1];
        ``news_provider`` either a text blob or a numeric sentiment score.
        """
        if not isinstance(series, PriceSeries):
            series = PriceSeries(series, symbol=self.symbol)

        external_signal, news = await asyncio.gather(
            self._call_provider('signal', signal_provider, series),
            self._call_provider('news', news_provider, series),
        )

        news_text = None
        sentiment_score = None
        if isinstance(news, str):
            news_text = news
        elif isinstance(news, (int, float)) and not isinstance(news, bool):
            sentiment_score = float(news)

        if external_signal is not None and not isinstance(external_signal, (int, float)):
            logger.warning(f"[ENGINE] Ignoring non-numeric external signal {external_signal!r}")
            external_signal = None

        return self.evaluate(
            series,
            history=history,
            external_signal=external_signal,
            news_text=news_text,
            sentiment_score=sentiment_score,
        )

    # =========================================================================
    # SIZING / EXITS
    # =========================================================================

    def size_position(
        self,
        balance: float,
        price: float,
        history: Iterable[TradeRecord] = (),
    ) -> PositionSizing:
        """Kelly size from the recent trade statistics"""
        recent = list(history)[-ADAPTIVE_WINDOW:]
        stats = summarize_trade_stats(recent)
        return self.sizer.size_position(
            balance,
            price,
            stats.win_rate,
            stats.avg_win,
            stats.avg_loss,
            trade_outcomes(recent),
        )

    def exit_levels(
        self,
        series: PriceSeries,
        entry_price: float,
        history: Iterable[TradeRecord] = (),
        regime: Optional[MarketRegime] = None,
    ) -> ExitLevels:
        """Dynamic TP/SL for a long entry at ``entry_price``"""
        if regime is None:
            regime = self.regime_detector.detect(series)
        stats = summarize_trade_stats(history, window=ADAPTIVE_WINDOW)
        return compute_exit_levels(series, entry_price, regime, stats.win_rate)

    # =========================================================================
    # PARAMETERS / REPORTING
    # =========================================================================

    def apply_optimized(self, best_params) -> AdaptiveParameters:
        """
        Adopt an optimised candidate (anything with ``to_adaptive_parameters``)
        """
        self.controller.parameters = best_params.to_adaptive_parameters(self.parameters)
        logger.info(f"[ENGINE] Applied optimised parameters: {self.parameters.to_dict()}")
        return self.parameters

    def reset_parameters(self) -> AdaptiveParameters:
        return self.controller.reset()

    def summary(self, history: Iterable[TradeRecord] = ()) -> Dict:
        """Strategy summary: trade statistics, current parameters, alert"""
        trades = list(history)
        wins = sum(1 for t in trades if t.is_winner)
        alert = self.controller.performance_alert(trades)
        return {
            'symbol': self.symbol,
            'total_trades': len(trades),
            'winning_trades': wins,
            'win_rate': wins / len(trades) if trades else 0.0,
            'total_pnl': sum(t.pnl for t in trades),
            'profit_factor': profit_factor(trades),
            'parameters': self.parameters.to_dict(),
            'alert': {'level': alert.level, 'message': alert.message} if alert else None,
        }
