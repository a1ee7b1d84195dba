"""
Volume Indicators.
"""

import numpy as np


def volume_ratio(volume: np.ndarray, lookback: int = 20) -> float:
    """
    Current volume relative to the mean of the last ``lookback`` volumes

    The current bar is part of the average. Returns 0.0 when there is no
    volume at all.
    """
    volumes = np.asarray(volume, dtype=float)
    if len(volumes) == 0:
        return 0.0
    avg = volumes[-lookback:].sum() / lookback
    if avg <= 0:
        return 0.0
    return float(volumes[-1] / avg)
