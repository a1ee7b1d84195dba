"""
Agents Module - regime detection, risk assessment, signal scoring and
parameter adaptation, wired together by SignalEngine.
"""

from .regime_detector import MarketRegime, RegimeDetector, RegimeReading
from .risk_assessor import RiskAssessment, RiskAssessor, RiskLevel, scan_news_tone
from .signal_scorer import Signal, SignalResult, SignalScorer, clamp_external_signal
from .adaptive_controller import (
    AdaptiveParameterController,
    AdaptiveParameters,
    PerformanceAlert,
)
from .signal_engine import SignalEngine

__all__ = [
    'MarketRegime',
    'RegimeDetector',
    'RegimeReading',
    'RiskAssessment',
    'RiskAssessor',
    'RiskLevel',
    'scan_news_tone',
    'Signal',
    'SignalResult',
    'SignalScorer',
    'clamp_external_signal',
    'AdaptiveParameterController',
    'AdaptiveParameters',
    'PerformanceAlert',
    'SignalEngine',
]
