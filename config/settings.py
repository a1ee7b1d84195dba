"""
Configuration settings for the BitFlow signal engine and backtester
"""
import os

from dotenv import load_dotenv

load_dotenv()


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value not in (None, '') else default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value not in (None, '') else default


# ===========================
# SIGNAL SCORING
# ===========================

# Bars required before the scorer emits anything
MIN_BARS_FOR_SIGNAL = _env_int('BITFLOW_MIN_BARS', 100)

# Factor weights (sum to 1.0)
EXTERNAL_SIGNAL_WEIGHT = 0.40
MA_CROSSOVER_WEIGHT = 0.20
RSI_WEIGHT = 0.15
MACD_WEIGHT = 0.15
VOLUME_WEIGHT = 0.10

# External signal is ignored below this magnitude
EXTERNAL_SIGNAL_MIN = 0.3

# RSI recovery / exhaustion bands (exclusive bounds)
RSI_BUY_BAND = (20.0, 30.0)
RSI_SELL_BAND = (70.0, 80.0)

# MACD periods
MACD_FAST = 12
MACD_SLOW = 26
MACD_SIGNAL = 9

# Volume confirmation
VOLUME_LOOKBACK = 20
VOLUME_CONFIRMATION_RATIO = 1.2

# Regime / risk score multipliers
TRENDING_BOOST = 1.2
SIDEWAYS_PENALTY = 0.8
HIGH_RISK_PENALTY = 0.7
LOW_RISK_BONUS = 1.1

# Minimum confidence for a decision to be emitted
MIN_SIGNAL_CONFIDENCE = 0.5

# ===========================
# ADAPTIVE PARAMETERS
# ===========================

DEFAULT_RSI_PERIOD = 14
DEFAULT_MA_FAST = 10
DEFAULT_MA_SLOW = 20
DEFAULT_CONFIDENCE_THRESHOLD = 0.6

RSI_PERIOD_BOUNDS = (7, 21)
MA_FAST_MAX = 15
MA_SLOW_MAX = 30
CONFIDENCE_THRESHOLD_BOUNDS = (0.4, 0.8)

# Trailing trades inspected by the controller, and the minimum to adapt
ADAPTIVE_WINDOW = 20
ADAPTIVE_MIN_TRADES = 10

# ===========================
# REGIME DETECTION
# ===========================

REGIME_SMA_PERIOD = 20
REGIME_SLOPE_LOOKBACK = 10
REGIME_TREND_THRESHOLD = 0.02       # 2% SMA drift over the slope lookback
REGIME_VOLATILITY_WINDOW = 20
REGIME_VOLATILITY_THRESHOLD = 0.03  # RMS log return

# ===========================
# POSITION SIZING / EXITS
# ===========================

MIN_POSITION_SIZE = 0.0001
MAX_POSITION_PCT = 0.10             # Hard concentration cap (10% of balance)

FALLBACK_RISK_PCT = 0.01            # 1% of balance
FALLBACK_TAKE_PROFIT_PCT = 1.0      # percent
FALLBACK_STOP_LOSS_PCT = 2.0        # percent

TAKE_PROFIT_BOUNDS = (0.5, 5.0)     # percent
STOP_LOSS_BOUNDS = (0.3, 3.0)       # percent

EXIT_ATR_PERIOD = 14

# Neutral trade statistics used when no history exists
DEFAULT_WIN_RATE = 0.5
DEFAULT_AVG_WIN = 0.02
DEFAULT_AVG_LOSS = 0.015

# ===========================
# BACKTESTING
# ===========================

BACKTEST_WARMUP_BARS = 21
INITIAL_BALANCE = _env_float('BITFLOW_INITIAL_BALANCE', 10_000.0)
FEE_RATE = _env_float('BITFLOW_FEE_RATE', 0.0)
DAILY_RISK_FREE_RATE = 0.0005
TRADING_PERIODS_PER_YEAR = 252

# Trade record sanity limit
MAX_RECORD_MAGNITUDE = 1e8

# ===========================
# OPTIMIZER
# ===========================

OPTIMIZER_TRIALS = _env_int('BITFLOW_OPTIMIZER_TRIALS', 30)
OPTIMIZER_MAX_WORKERS = _env_int('BITFLOW_OPTIMIZER_WORKERS', 4)
OPTIMIZER_SEED = os.getenv('BITFLOW_OPTIMIZER_SEED') or None

# ===========================
# LOGGING
# ===========================

LOG_LEVEL = os.getenv('BITFLOW_LOG_LEVEL', 'INFO').upper()
LOG_FILE = os.getenv('BITFLOW_LOG_FILE', '')
