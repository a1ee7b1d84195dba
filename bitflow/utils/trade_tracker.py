"""
Trade Tracker for BitFlow

Closed-trade records and the injected, append-only trade history:
- TradeRecord validation (finite, bounded numbers)
- Explicit append with an optional persistence sink
- Live statistics (win rate, average win/loss, profit factor, streak)
"""
import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from config.settings import (
    DEFAULT_AVG_LOSS,
    DEFAULT_AVG_WIN,
    DEFAULT_WIN_RATE,
    MAX_RECORD_MAGNITUDE,
)
from bitflow.exceptions import InvalidInputError

logger = logging.getLogger(__name__)


class TradeRecord(BaseModel):
    """Immutable record of one closed trade"""

    model_config = ConfigDict(frozen=True, extra='ignore')

    symbol: str = Field(min_length=1)
    entry_index: int
    entry_price: float
    exit_index: int
    exit_price: float
    quantity: float
    pnl: float
    pnl_percent: float
    exit_reason: str = Field(min_length=1)

    entry_time: Optional[datetime] = None
    exit_time: Optional[datetime] = None
    take_profit_percent: Optional[float] = None
    stop_loss_percent: Optional[float] = None
    signal_confidence: Optional[float] = None
    market_regime: Optional[str] = None

    @field_validator(
        'entry_index', 'exit_index', 'entry_price', 'exit_price', 'quantity', 'pnl', 'pnl_percent',
        'take_profit_percent', 'stop_loss_percent', 'signal_confidence',
    )
    @classmethod
    def _finite_bounded(cls, v: Optional[float]) -> Optional[float]:
        if v is None:
            return v
        if abs(v) > MAX_RECORD_MAGNITUDE:
            raise ValueError(f'value out of range: {v}')
        if not math.isfinite(v):
            raise ValueError(f'value is not finite: {v}')
        return v

    @field_validator('market_regime', mode='before')
    @classmethod
    def _regime_value(cls, v):
        # Accept MarketRegime members as well as plain strings
        return getattr(v, 'value', v)

    @property
    def is_winner(self) -> bool:
        return self.pnl > 0


RawTradeRecord = Union[TradeRecord, Mapping[str, Any]]


def validate_trade_record(raw: RawTradeRecord) -> TradeRecord:
    """
    Validate a raw record

    Raises:
        InvalidInputError: Missing fields, non-finite or out-of-range numbers
    """
    if isinstance(raw, TradeRecord):
        return raw
    try:
        return TradeRecord.model_validate(raw)
    except ValidationError as e:
        raise InvalidInputError(f"Invalid trade record: {e.errors()[0]['msg']}") from e


class TradeHistory:
    """
    Append-only collection of closed trades.

    Consumers get read-only views (tuples); the only way in is
    :meth:`append`, which validates and then hands the record to the
    optional sink (a database writer, a JSON dumper, ...).
    """

    def __init__(
        self,
        records: Iterable[RawTradeRecord] = (),
        sink: Optional[Callable[[TradeRecord], None]] = None,
    ):
        self._records: List[TradeRecord] = []
        self.sink = None
        for record in records:
            self.append(record)
        self.sink = sink

    def append(self, record: RawTradeRecord) -> bool:
        """
        Validate and append a closed trade

        Returns:
            True if the record was accepted, False if it was rejected
        """
        try:
            validated = validate_trade_record(record)
        except InvalidInputError as e:
            logger.warning(f"[TRADES] Rejected trade record: {e}")
            return False

        self._records.append(validated)

        if self.sink is not None:
            try:
                self.sink(validated)
            except Exception as e:
                logger.error(f"[TRADES] History sink failed: {e}")

        return True

    @property
    def records(self) -> tuple:
        return tuple(self._records)

    def recent(self, n: int) -> tuple:
        """Last ``n`` trades, oldest first"""
        if n <= 0:
            return ()
        return tuple(self._records[-n:])

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[TradeRecord]:
        return iter(tuple(self._records))

    def __getitem__(self, index):
        return self._records[index]


@dataclass
class TradeStats:
    """Live-history summary consumed by sizing and exit adjustment"""
    win_rate: float = DEFAULT_WIN_RATE
    avg_win: float = DEFAULT_AVG_WIN        # fraction, e.g. 0.02 = 2%
    avg_loss: float = DEFAULT_AVG_LOSS      # fraction, positive
    total_trades: int = 0
    profit_factor: float = 1.0

    def to_dict(self) -> Dict:
        return {
            'win_rate': self.win_rate,
            'avg_win': self.avg_win,
            'avg_loss': self.avg_loss,
            'total_trades': self.total_trades,
            'profit_factor': self.profit_factor,
        }


def profit_factor(trades: Sequence[TradeRecord]) -> float:
    """Gross profit / gross loss (inf when there are only winners)"""
    if not trades:
        return 0.0
    gross_profit = sum(t.pnl for t in trades if t.is_winner)
    gross_loss = abs(sum(t.pnl for t in trades if not t.is_winner))
    if gross_loss == 0:
        return float('inf') if gross_profit > 0 else 0.0
    return gross_profit / gross_loss


def summarize_trade_stats(trades: Iterable[TradeRecord], window: Optional[int] = None) -> TradeStats:
    """
    Summarize a trade list (optionally only its last ``window`` trades)

    Average win/loss come from ``pnl_percent`` and are returned as
    fractions. Neutral defaults are used when no trades are available.
    """
    trades = list(trades)
    if window is not None:
        trades = trades[-window:] if window > 0 else []

    if not trades:
        return TradeStats()

    wins = [t.pnl_percent / 100 for t in trades if t.pnl > 0]
    losses = [abs(t.pnl_percent) / 100 for t in trades if t.pnl < 0]

    return TradeStats(
        win_rate=len(wins) / len(trades),
        avg_win=sum(wins) / len(wins) if wins else DEFAULT_AVG_WIN,
        avg_loss=sum(losses) / len(losses) if losses else DEFAULT_AVG_LOSS,
        total_trades=len(trades),
        profit_factor=profit_factor(trades),
    )


def trade_outcomes(trades: Iterable[TradeRecord]) -> List[bool]:
    """Win/lose flags in chronological order"""
    return [t.is_winner for t in trades]
