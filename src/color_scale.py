"""
Color scales for state choropleths.

Turns a state's aggregated value into an RGBA fill color. Two modes share the
same no-data handling:

- log-value: red intensity follows ln(value) between the smallest and largest
  positive values, so a few dominant states don't wash out the rest
- rank: red intensity follows the state's position in the rank order, which
  is robust to outliers

All scale bounds come from the RegionSnapshot; nothing is recomputed per query.
"""

import math
from enum import Enum
from typing import Optional, Tuple

from branca.colormap import LinearColormap

from aggregation import RegionSnapshot

RGBA = Tuple[int, int, int, int]

ALPHA = 180
NO_DATA_COLOR: RGBA = (0, 0, 0, ALPHA)          # Black for no data
MAX_INTENSITY_COLOR: RGBA = (255, 0, 0, ALPHA)  # Single distinct value
MIN_RED = 30
MAX_RED = 255

# Number of color stops used to approximate the log scale in the legend
LEGEND_STOPS = 6


class ColorMode(str, Enum):
    LOG_VALUE = 'log-value'
    RANK = 'rank'


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def _red(red: int) -> RGBA:
    return (red, 0, 0, ALPHA)


def _log_t(value: float, min_val: float, max_val: float) -> float:
    log_min = math.log(min_val)
    return (math.log(value) - log_min) / (math.log(max_val) - log_min)


def color_for(region: str, snapshot: RegionSnapshot,
              mode: ColorMode = ColorMode.LOG_VALUE) -> RGBA:
    """
    Calculate the fill color for a state.

    Args:
        region: State name as used by the boundary data
        snapshot: Aggregated values, ranks and scale bounds
        mode: ColorMode (or its string value)

    Returns:
        (red, green, blue, alpha) tuple with channels in 0-255
    """
    mode = ColorMode(mode)
    value = snapshot.values.get(region, 0)
    rank = snapshot.ranks.get(region)
    if value == 0 or rank is None:
        return NO_DATA_COLOR

    if mode is ColorMode.RANK:
        t = rank / max(snapshot.max_rank, 1)
        return _red(_round_half_up(MAX_RED * t))

    min_val, max_val = snapshot.min_value, snapshot.max_value
    # If all values are the same, use max intensity
    if min_val == max_val:
        return MAX_INTENSITY_COLOR

    t = _log_t(value, min_val, max_val)
    return _red(_round_half_up(MIN_RED + (MAX_RED - MIN_RED) * t))


def to_hex(color: RGBA) -> str:
    """Hex color string for the RGB channels, e.g. '#ff0000'."""
    r, g, b, _ = color
    return f'#{r:02x}{g:02x}{b:02x}'


def to_opacity(color: RGBA) -> float:
    """Alpha channel as a 0-1 opacity."""
    return round(color[3] / 255, 3)


def build_legend(snapshot: RegionSnapshot, mode: ColorMode = ColorMode.LOG_VALUE,
                 caption: str = 'Requests Filled') -> Optional[LinearColormap]:
    """
    Build a branca colormap matching the fill colors of a snapshot.

    Args:
        snapshot: Aggregated values and ranks
        mode: ColorMode the map is drawn with
        caption: Legend title

    Returns:
        LinearColormap ready to add to a folium map, or None if no state has data
    """
    mode = ColorMode(mode)
    if snapshot.max_value is None:
        return None

    if mode is ColorMode.RANK:
        # Legend shows display positions 1 (highest total, brightest) to N
        count = snapshot.ranked_count
        if count == 1:
            # A lone ranked state has rank 0 and is drawn black
            colors = [to_hex(_red(0))] * 2
            index = [1, 2]
        else:
            colors = [to_hex(_red(MAX_RED)), to_hex(_red(0))]
            index = [1, count]
        colormap = LinearColormap(colors=colors, index=index, vmin=index[0], vmax=index[-1])
        colormap.caption = f"{caption} (Rank)"
        return colormap

    min_val, max_val = snapshot.min_value, snapshot.max_value
    if min_val == max_val:
        colormap = LinearColormap(
            colors=[to_hex(MAX_INTENSITY_COLOR)] * 2,
            index=[0, max_val], vmin=0, vmax=max_val
        )
    else:
        # Geometric spacing keeps the piecewise-linear legend close to the log scale
        ratio = (max_val / min_val) ** (1 / (LEGEND_STOPS - 1))
        index = [min_val * ratio ** i for i in range(LEGEND_STOPS)]
        index[-1] = max_val
        colors = [
            to_hex(_red(_round_half_up(MIN_RED + (MAX_RED - MIN_RED) * _log_t(v, min_val, max_val))))
            for v in index
        ]
        colormap = LinearColormap(colors=colors, index=index, vmin=min_val, vmax=max_val)
    colormap.caption = f"{caption} (Log Scale)"
    return colormap
