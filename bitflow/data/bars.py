"""
Bar boundary - canonical OHLCV bars and the append-only price series.

Market-data collaborators hand over bars in whatever shape their API uses
(``close`` / ``c``, ``volume`` / ``v``, ...). Everything is normalised here,
once, into :class:`Bar`; the rest of the engine only ever sees the
canonical field names.
"""

import math
from datetime import datetime
from typing import Any, Iterable, Iterator, List, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from bitflow.exceptions import InvalidInputError


class Bar(BaseModel):
    """Immutable OHLCV bar"""

    model_config = ConfigDict(frozen=True, extra='ignore')

    timestamp: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices('timestamp', 't', 'time', 'date'),
    )
    open: float = Field(validation_alias=AliasChoices('open', 'o'))
    high: float = Field(validation_alias=AliasChoices('high', 'h'))
    low: float = Field(validation_alias=AliasChoices('low', 'l'))
    close: float = Field(validation_alias=AliasChoices('close', 'c'))
    volume: float = Field(default=0.0, validation_alias=AliasChoices('volume', 'v'))

    @field_validator('open', 'high', 'low', 'close', mode='before')
    @classmethod
    def _price_not_null(cls, v):
        if v is None:
            raise ValueError('price is null')
        return v

    @field_validator('open', 'high', 'low', 'close')
    @classmethod
    def _price_finite_positive(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError(f'price is not finite: {v}')
        if v <= 0:
            raise ValueError(f'price must be positive: {v}')
        return v

    @field_validator('volume', mode='before')
    @classmethod
    def _volume_default(cls, v):
        # Absent volume is treated as zero, never synthesised
        return 0.0 if v is None else v

    @field_validator('volume')
    @classmethod
    def _volume_finite(cls, v: float) -> float:
        if not math.isfinite(v) or v < 0:
            raise ValueError(f'invalid volume: {v}')
        return v

    @model_validator(mode='after')
    def _high_above_low(self) -> 'Bar':
        if self.high < self.low:
            raise ValueError(f'high {self.high} below low {self.low}')
        return self


RawBar = Union[Bar, Mapping[str, Any]]


def normalize_bar(raw: RawBar) -> Bar:
    """
    Convert a raw bar mapping into a canonical :class:`Bar`

    Raises:
        InvalidInputError: If any OHLC value is missing, NaN or malformed
    """
    if isinstance(raw, Bar):
        return raw
    try:
        return Bar.model_validate(raw)
    except ValidationError as e:
        raise InvalidInputError(f"Invalid bar {raw!r}: {e.errors()[0]['msg']}") from e
    except TypeError as e:
        raise InvalidInputError(f"Invalid bar {raw!r}: {e}") from e


class PriceSeries:
    """
    Ordered, append-only sequence of bars for one instrument/timeframe.

    Most recent bar last. The numpy views returned by ``closes`` etc. are
    read-only so a series can be shared between concurrent backtest trials.
    """

    def __init__(self, bars: Iterable[RawBar] = (), symbol: str = 'UNKNOWN', timeframe: str = ''):
        self.symbol = symbol
        self.timeframe = timeframe
        self._bars: List[Bar] = []
        self._arrays = None
        for bar in bars:
            self.append(bar)

    @classmethod
    def _from_validated(cls, bars: Sequence[Bar], symbol: str, timeframe: str) -> 'PriceSeries':
        series = cls(symbol=symbol, timeframe=timeframe)
        series._bars = list(bars)
        return series

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]], symbol: str = 'UNKNOWN',
                     timeframe: str = '') -> 'PriceSeries':
        """Build a series from raw market-data records (any supported field names)"""
        return cls(records, symbol=symbol, timeframe=timeframe)

    @classmethod
    def from_frame(cls, df: pd.DataFrame, symbol: str = 'UNKNOWN', timeframe: str = '') -> 'PriceSeries':
        """Build a series from an OHLCV DataFrame (``Close`` or ``close`` style columns)"""
        frame = df.rename(columns=str.lower)
        records = frame.to_dict('records')
        if isinstance(frame.index, pd.DatetimeIndex):
            for record, ts in zip(records, frame.index):
                record.setdefault('timestamp', ts.to_pydatetime())
        return cls(records, symbol=symbol, timeframe=timeframe)

    @classmethod
    def from_closes(cls, closes: Iterable[float], volume: float = 1000.0,
                    symbol: str = 'UNKNOWN', timeframe: str = '') -> 'PriceSeries':
        """Build a flat-candle series from close prices only"""
        return cls(
            ({'open': c, 'high': c, 'low': c, 'close': c, 'volume': volume} for c in closes),
            symbol=symbol,
            timeframe=timeframe,
        )

    def append(self, raw: RawBar) -> Bar:
        """Validate and append a bar; bars must arrive in time order"""
        bar = normalize_bar(raw)
        if self._bars:
            last = self._bars[-1]
            if bar.timestamp is not None and last.timestamp is not None and bar.timestamp < last.timestamp:
                raise InvalidInputError(
                    f"Out-of-order bar for {self.symbol}: {bar.timestamp} < {last.timestamp}"
                )
        self._bars.append(bar)
        self._arrays = None
        return bar

    def head(self, n: int) -> 'PriceSeries':
        """First ``n`` bars as a new series (no re-validation)"""
        return PriceSeries._from_validated(self._bars[:n], self.symbol, self.timeframe)

    def tail(self, n: int) -> 'PriceSeries':
        """Last ``n`` bars as a new series (no re-validation)"""
        return PriceSeries._from_validated(self._bars[-n:] if n > 0 else [], self.symbol, self.timeframe)

    @property
    def bars(self) -> tuple:
        return tuple(self._bars)

    def __len__(self) -> int:
        return len(self._bars)

    def __iter__(self) -> Iterator[Bar]:
        return iter(self._bars)

    def __getitem__(self, index):
        return self._bars[index]

    def _build_arrays(self) -> dict:
        if self._arrays is None:
            arrays = {
                'open': np.array([b.open for b in self._bars], dtype=float),
                'high': np.array([b.high for b in self._bars], dtype=float),
                'low': np.array([b.low for b in self._bars], dtype=float),
                'close': np.array([b.close for b in self._bars], dtype=float),
                'volume': np.array([b.volume for b in self._bars], dtype=float),
            }
            for arr in arrays.values():
                arr.setflags(write=False)
            self._arrays = arrays
        return self._arrays

    @property
    def opens(self) -> np.ndarray:
        return self._build_arrays()['open']

    @property
    def highs(self) -> np.ndarray:
        return self._build_arrays()['high']

    @property
    def lows(self) -> np.ndarray:
        return self._build_arrays()['low']

    @property
    def closes(self) -> np.ndarray:
        return self._build_arrays()['close']

    @property
    def volumes(self) -> np.ndarray:
        return self._build_arrays()['volume']

    def to_frame(self) -> pd.DataFrame:
        """OHLCV DataFrame with ``Open/High/Low/Close/Volume`` columns"""
        arrays = self._build_arrays()
        timestamps = [b.timestamp for b in self._bars]
        index = None
        if timestamps and all(ts is not None for ts in timestamps):
            index = pd.DatetimeIndex(timestamps)
        return pd.DataFrame({
            'Open': arrays['open'],
            'High': arrays['high'],
            'Low': arrays['low'],
            'Close': arrays['close'],
            'Volume': arrays['volume'],
        }, index=index)

    def __repr__(self) -> str:
        return f"PriceSeries(symbol={self.symbol!r}, timeframe={self.timeframe!r}, bars={len(self)})"
