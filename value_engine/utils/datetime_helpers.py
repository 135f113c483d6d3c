import math
from datetime import date, datetime
from typing import Iterable, Optional, Union

import numpy as np
import pandas as pd

DateLike = Union[str, date, datetime, pd.Timestamp]

SECONDS_PER_DAY = 86_400


def to_timestamp(value: Optional[DateLike]) -> Optional[pd.Timestamp]:
    """Parse a date-like value into a tz-naive Timestamp, or None if unparseable."""
    if value is None:
        return None
    try:
        ts = pd.Timestamp(value)
    except (TypeError, ValueError):
        return None
    if pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_convert(None)
    return ts


def latest_date(dates: Iterable[Optional[DateLike]]) -> Optional[pd.Timestamp]:
    parsed = [ts for ts in (to_timestamp(d) for d in dates) if ts is not None]
    return max(parsed) if parsed else None


def age_in_days(match_date: Optional[DateLike], as_of: Optional[DateLike]) -> float:
    """Days from match_date to as_of, floored at zero; unknown dates count as fresh."""
    match_ts = to_timestamp(match_date)
    as_of_ts = to_timestamp(as_of)
    if match_ts is None or as_of_ts is None:
        return 0.0
    days = (as_of_ts - match_ts).total_seconds() / SECONDS_PER_DAY
    return max(0.0, days) if math.isfinite(days) else 0.0


def time_decay_weights(
    dates: Iterable[Optional[DateLike]],
    as_of: Optional[DateLike],
    half_life_days: float,
) -> np.ndarray:
    """Exponential half-life weights, 1.0 for a match played on as_of."""
    ages = np.array([age_in_days(d, as_of) for d in dates], dtype=float)
    if half_life_days is None or half_life_days <= 0:
        return np.ones_like(ages)
    return np.exp(-math.log(2) * ages / half_life_days)
