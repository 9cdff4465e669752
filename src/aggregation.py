"""
Per-state aggregation of tabular records.

Sums a numeric metric per state and derives a rank ordering of the states that
have data. The result is a RegionSnapshot: both maps plus the scale bounds the
color mapper needs, computed once and never mutated afterwards.

Malformed input never raises. A row without a state code contributes nothing,
and a metric that is missing, unparseable, negative or non-finite counts as 0.
"""

import logging
import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Union

import pandas as pd

from region_names import normalize

logger = logging.getLogger(__name__)

# Column names of the lending detail exports the map was built for
REGION_FIELD = 'Institution State'
METRIC_FIELD = 'Requests Filled'


@dataclass(frozen=True)
class RegionSnapshot:
    """
    Aggregated values and ranks for one input snapshot.

    Attributes:
        values: State name -> summed metric (>= 0). A state absent here has no data.
        ranks: State name -> zero-based rank, only for states with value > 0,
               ascending by value (0 = smallest)
        min_value: Smallest positive value, or None when no state has data
        max_value: Largest positive value, or None when no state has data
        max_rank: Largest rank, or None when no state has data
    """
    values: Mapping[str, float] = field(default_factory=lambda: MappingProxyType({}))
    ranks: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    max_rank: Optional[int] = None

    def __iter__(self):
        # Allows `values, ranks = aggregate(rows)`
        return iter((self.values, self.ranks))

    @property
    def ranked_count(self) -> int:
        """Number of states with a positive value."""
        return len(self.ranks)

    @classmethod
    def from_values(cls, values: Mapping[str, float]) -> 'RegionSnapshot':
        """Build a snapshot from finished totals, deriving ranks and scale bounds."""
        totals = dict(values)

        # sorted() is stable, so ties keep the order states were first seen
        positive = sorted(
            ((name, value) for name, value in totals.items() if value > 0),
            key=lambda item: item[1]
        )
        ranks = {name: idx for idx, (name, _) in enumerate(positive)}

        if positive:
            min_value, max_value = positive[0][1], positive[-1][1]
            max_rank = len(positive) - 1
        else:
            min_value = max_value = max_rank = None

        return cls(
            values=MappingProxyType(totals),
            ranks=MappingProxyType(ranks),
            min_value=min_value,
            max_value=max_value,
            max_rank=max_rank,
        )


def _clean_code(value) -> str:
    if not isinstance(value, str):
        return ''
    return value.strip()


def _coerce_metrics(series: pd.Series) -> pd.Series:
    """Convert metric strings to floats, replacing invalid values with 0."""
    stripped = series.map(lambda v: v.strip() if isinstance(v, str) else v)
    numeric = pd.to_numeric(stripped, errors='coerce').astype(float)
    # NaN fails both comparisons and is replaced as well
    valid = (numeric >= 0) & (numeric < math.inf)
    return numeric.where(valid, 0.0)


def aggregate(rows: Union[pd.DataFrame, Iterable[Mapping[str, str]]],
              region_field: str = REGION_FIELD,
              metric_field: str = METRIC_FIELD) -> RegionSnapshot:
    """
    Sum a metric per state and rank the states that have data.

    Args:
        rows: DataFrame or iterable of records (header name -> string value)
        region_field: Column holding the state abbreviation (exact match)
        metric_field: Column holding the numeric metric (exact match)

    Returns:
        RegionSnapshot; unpacks as (values, ranks)
    """
    if isinstance(rows, pd.DataFrame):
        df = rows
    else:
        df = pd.DataFrame.from_records(list(rows))

    if df.empty or region_field not in df.columns:
        logger.debug("No '%s' values found in %d rows", region_field, len(df))
        return RegionSnapshot()

    codes = df[region_field].map(_clean_code)
    if metric_field in df.columns:
        metrics = _coerce_metrics(df[metric_field])
    else:
        logger.debug("Column '%s' missing, every row contributes 0", metric_field)
        metrics = pd.Series(0.0, index=df.index)

    totals = {}
    skipped = 0
    # Plain loop so totals are summed strictly in row order
    for code, value in zip(codes.tolist(), metrics.tolist()):
        if not code:
            skipped += 1
            continue
        state = normalize(code)
        totals[state] = totals.get(state, 0.0) + value

    if skipped:
        logger.debug("Skipped %d rows without a state code", skipped)

    snapshot = RegionSnapshot.from_values(totals)
    logger.debug("Aggregated %d rows into %d states (%d with data)",
                 len(df), len(snapshot.values), snapshot.ranked_count)
    return snapshot
