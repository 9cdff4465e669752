"""
Configuration for the state choropleth map.

Values come from the defaults below, then CHOROPLETH_* environment variables,
then command line flags (see us_choropleth.main).
"""

import os
from dataclasses import dataclass, field, replace
from typing import List, Mapping, Optional

from aggregation import METRIC_FIELD, REGION_FIELD
from color_scale import ColorMode

DEFAULT_SOURCE_URL = 'data/lendingDetail-012024.tsv'
DEFAULT_GEOJSON_URL = (
    'https://raw.githubusercontent.com/PublicaMundi/MappingAPI/master/data/geojson/us-states.json'
)
DEFAULT_MAP_STYLE = 'CartoDB darkmatternolabels'
DEFAULT_OUTPUT = 'us_choropleth_map.html'

ENV_PREFIX = 'CHOROPLETH_'


@dataclass
class MapConfig:
    """
    Options recognized by the map.

    source_url is used when source_urls is empty. With source_urls set, the
    first file_count entries are aggregated together (all of them if
    file_count is None). map_style_url is handed to folium as the tile layer.
    """
    source_url: str = DEFAULT_SOURCE_URL
    color_mode: ColorMode = ColorMode.LOG_VALUE
    map_style_url: str = DEFAULT_MAP_STYLE
    geojson_url: str = DEFAULT_GEOJSON_URL
    source_urls: List[str] = field(default_factory=list)
    file_count: Optional[int] = None
    region_column: str = REGION_FIELD
    metric_column: str = METRIC_FIELD
    output_path: str = DEFAULT_OUTPUT

    def __post_init__(self):
        self.color_mode = ColorMode(self.color_mode)
        if self.file_count is not None and self.file_count < 1:
            raise ValueError("file_count must be at least 1")

    @property
    def sources(self) -> List[str]:
        """Tabular sources to aggregate, in order."""
        if not self.source_urls:
            return [self.source_url]
        if self.file_count is None:
            return list(self.source_urls)
        return list(self.source_urls[:self.file_count])

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'MapConfig':
        """Build a config from CHOROPLETH_* variables, falling back to defaults."""
        environ = os.environ if environ is None else environ
        config = cls()

        def env(name):
            return environ.get(f'{ENV_PREFIX}{name}') or None

        overrides = {
            'source_url': env('SOURCE_URL'),
            'color_mode': env('COLOR_MODE'),
            'map_style_url': env('MAP_STYLE_URL'),
            'geojson_url': env('GEOJSON_URL'),
            'region_column': env('REGION_COLUMN'),
            'metric_column': env('METRIC_COLUMN'),
            'output_path': env('OUTPUT'),
        }
        if env('SOURCE_URLS'):
            overrides['source_urls'] = [u.strip() for u in env('SOURCE_URLS').split(',') if u.strip()]
        if env('FILE_COUNT'):
            overrides['file_count'] = int(env('FILE_COUNT'))

        return config.updated(**overrides)

    def updated(self, **overrides) -> 'MapConfig':
        """Copy of this config with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})
