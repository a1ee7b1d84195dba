"""
BitFlow - adaptive signal and backtesting engine for a single instrument
"""

__version__ = '1.0.0'
