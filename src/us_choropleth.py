"""
US State Choropleth Module

Interactive choropleth map of US states shaded by a metric summed over
tab-separated records (by default, 'Requests Filled' per 'Institution State'
in lending detail exports).

Key Features:
- Sums the metric per state and ranks the states that have data
- Log-value or rank-based red color scale, black for states without data
- Hover tooltips with the state's total and its rank (1 = highest)
- Aggregates several monthly files at once (first N of a list)
- Loads the records and the state boundaries in parallel; either may arrive first

Example Usage:
    result = create_choropleth_map(MapConfig(
        source_urls=['data/lendingDetail-012024.tsv', 'data/lendingDetail-022024.tsv'],
        color_mode='log-value',
    ))
    result['map'].save('requests_filled.html')

Command line:
    us-choropleth --source data/lendingDetail-012024.tsv --color-mode rank -o map.html
"""

import argparse
import copy
import logging
import sys
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, Optional

import folium

from aggregation import METRIC_FIELD, REGION_FIELD, RegionSnapshot, aggregate
from color_scale import NO_DATA_COLOR, RGBA, ColorMode, build_legend, color_for, to_hex, to_opacity
from common import DataSourceError, GeoJSONFormatError, load_geojson, load_records
from settings import DEFAULT_MAP_STYLE, MapConfig

logger = logging.getLogger(__name__)


def format_metric(value: float) -> str:
    """Format a total for display: whole numbers without decimals, thousands separated."""
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.2f}"


class USChoroplethMap:
    """
    Holds the boundary data and the current aggregate snapshot for a state map.

    The two inputs arrive independently. Until the boundaries are loaded the map
    renders without a choropleth layer; until records are aggregated every
    state is drawn with the no-data color.
    """

    # Outline drawn around every state
    BORDER = {
        'color': '#ffffff',
        'weight': 1,
        'opacity': 0.78,
    }

    def __init__(self, color_mode: ColorMode = ColorMode.LOG_VALUE, title: str = METRIC_FIELD):
        self.color_mode = ColorMode(color_mode)
        self.title = title
        self.geojson_data: Optional[dict] = None
        self.snapshot: Optional[RegionSnapshot] = None
        self._lock = threading.Lock()
        self._generation = 0

    @property
    def geometry_ready(self) -> bool:
        # A collection without features cannot be drawn
        features = (self.geojson_data or {}).get('features')
        return isinstance(features, list) and len(features) > 0

    @property
    def data_ready(self) -> bool:
        return self.snapshot is not None

    def set_geojson(self, geojson_data: dict):
        """Install the state boundary FeatureCollection."""
        self.geojson_data = geojson_data

    def begin_records_load(self) -> int:
        """
        Start a new records load and return its token.

        Only the most recently started load may install its snapshot; results of
        older loads are dropped when they arrive.
        """
        with self._lock:
            self._generation += 1
            return self._generation

    def apply_records(self, rows, token: Optional[int] = None,
                      region_field: str = REGION_FIELD,
                      metric_field: str = METRIC_FIELD) -> bool:
        """
        Aggregate rows and replace the current snapshot.

        Args:
            rows: DataFrame or iterable of records
            token: Value from begin_records_load(); None applies unconditionally
            region_field: Column holding the state abbreviation
            metric_field: Column holding the metric

        Returns:
            True if the snapshot was installed, False if the load was superseded
        """
        snapshot = aggregate(rows, region_field, metric_field)
        with self._lock:
            if token is not None and token != self._generation:
                logger.debug(f"Dropping records load {token}, superseded by {self._generation}")
                return False
            self.snapshot = snapshot
        return True

    @staticmethod
    def feature_region(feature: dict) -> Optional[str]:
        return (feature.get('properties') or {}).get('name')

    def feature_color(self, feature: dict) -> RGBA:
        """RGBA fill color for a GeoJSON feature."""
        snapshot = self.snapshot
        region = self.feature_region(feature)
        if snapshot is None or region is None:
            return NO_DATA_COLOR
        return color_for(region, snapshot, self.color_mode)

    def feature_style(self, feature: dict) -> Dict:
        """folium style dict for a GeoJSON feature."""
        fill = self.feature_color(feature)
        return {
            'fillColor': to_hex(fill),
            'fillOpacity': to_opacity(fill),
            **self.BORDER,
        }

    def display_rank(self, region: str) -> Optional[int]:
        """Rank position for display, 1 being the highest total; None if unranked."""
        snapshot = self.snapshot
        if snapshot is None or region not in snapshot.ranks:
            return None
        return snapshot.ranked_count - snapshot.ranks[region]

    def feature_tooltip(self, feature: dict) -> str:
        """Tooltip HTML with the state's total and rank."""
        region = self.feature_region(feature) or 'Unknown'
        snapshot = self.snapshot
        value = snapshot.values.get(region, 0) if snapshot is not None else 0
        rank = self.display_rank(region)
        return (
            f"<b>{region}</b><br>"
            f"{self.title}: {format_metric(value)}<br>"
            f"Rank: {rank if rank is not None else 'N/A'}"
        )

    def create_map(self, tiles: str = DEFAULT_MAP_STYLE) -> folium.Map:
        """
        Generate the interactive map from whatever inputs are ready.

        Args:
            tiles: folium tile provider name or tile URL template

        Returns:
            folium map object ready for display or saving
        """
        # Custom tile URLs need an attribution; named providers bring their own
        attr = 'Map tiles' if '{' in tiles else None
        m = folium.Map(location=[39, -98], zoom_start=4, tiles=tiles, attr=attr,
                       min_zoom=3, max_zoom=16)

        if not self.geometry_ready:
            logger.info("State boundaries not loaded yet, rendering base map only")
            return m

        # Deep copy to avoid modifying the loaded boundaries
        geojson_copy = copy.deepcopy(self.geojson_data)
        for feature in geojson_copy['features']:
            if not feature.get('properties'):
                feature['properties'] = {}
            feature['properties']['hover_info'] = self.feature_tooltip(feature)

        geojson_layer = folium.GeoJson(
            geojson_copy,
            style_function=self.feature_style,
            name=self.title
        )
        tooltip = folium.GeoJsonTooltip(
            fields=['hover_info'],
            aliases=[''],
            labels=False,
            sticky=True,
            style=("background-color: rgba(0,0,0,0.8); color: white; "
                   "font-size: 1em; border-radius: 4px; padding: 6px;")
        )
        geojson_layer.add_child(tooltip)
        geojson_layer.add_to(m)

        if self.snapshot is not None:
            legend = build_legend(self.snapshot, self.color_mode, self.title)
            if legend is not None:
                legend.add_to(m)

        return m


def create_choropleth_map(config: MapConfig) -> Dict:
    """
    Load records and boundaries, aggregate, and build the map.

    Both sources are fetched in parallel. A failed fetch raises DataSourceError.
    Boundary data that arrives but cannot be used is logged and left pending,
    so the base map still renders.

    Returns:
        Dictionary containing:
            'map': folium map object ready for display/saving
            'data': Mapping from state name to summed metric
            'ranks': Mapping from state name to zero-based rank (0 = smallest)
            'stats': Dictionary with 'min', 'max', 'count' of states with data
    """
    mapper = USChoroplethMap(config.color_mode, title=config.metric_column)
    token = mapper.begin_records_load()

    with ThreadPoolExecutor(max_workers=2) as executor:
        records_future = executor.submit(load_records, config.sources)
        geojson_future = executor.submit(load_geojson, config.geojson_url)

        for future in as_completed([records_future, geojson_future]):
            if future is geojson_future:
                try:
                    mapper.set_geojson(future.result())
                except GeoJSONFormatError as e:
                    logger.warning(f"Could not load GeoJSON: {e}")
            else:
                mapper.apply_records(future.result(), token,
                                     config.region_column, config.metric_column)

    snapshot = mapper.snapshot
    return {
        'map': mapper.create_map(config.map_style_url),
        'data': dict(snapshot.values),
        'ranks': dict(snapshot.ranks),
        'stats': {
            'min': snapshot.min_value,
            'max': snapshot.max_value,
            'count': snapshot.ranked_count,
        },
    }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Render a US state choropleth from TSV records.")
    parser.add_argument('--source', dest='source_urls', action='append',
                        help="TSV path or URL; repeat to aggregate several files")
    parser.add_argument('--file-count', type=int,
                        help="Only aggregate the first N sources")
    parser.add_argument('--color-mode', choices=[m.value for m in ColorMode],
                        help="Color by log-scaled value or by rank")
    parser.add_argument('--map-style', dest='map_style_url',
                        help="folium tile provider name or tile URL template")
    parser.add_argument('--geojson', dest='geojson_url',
                        help="State boundaries GeoJSON path or URL")
    parser.add_argument('--region-column', help="Column with state abbreviations")
    parser.add_argument('--metric-column', help="Column with the metric to sum")
    parser.add_argument('-o', '--output', dest='output_path', help="Output HTML file")
    parser.add_argument('-v', '--verbose', action='store_true', help="Debug logging")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(asctime)s - %(levelname)s - %(message)s')

    overrides = vars(args)
    overrides.pop('verbose')
    try:
        config = MapConfig.from_env().updated(**overrides)
    except ValueError as e:
        logger.error(f"ERROR: Invalid configuration: {e}")
        return 1

    try:
        result = create_choropleth_map(config)
    except DataSourceError as e:
        logger.error(f"ERROR: Cannot render map: {e}")
        return 1

    result['map'].save(config.output_path)
    stats = result['stats']
    logger.info(f"Saved map with {stats['count']} states with data to {config.output_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
