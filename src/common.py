"""
Shared loaders for the tabular records and the state boundary GeoJSON.

Sources may be local paths or http(s) URLs. Any failure to obtain or parse a
source is raised as DataSourceError so the caller can report that the map
cannot be rendered.
"""

import io
import json
import logging
from pathlib import Path
from typing import List, Sequence, Union

import pandas as pd
import requests

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30


class DataSourceError(Exception):
    """Raised when a data source cannot be fetched or parsed."""


class GeoJSONFormatError(DataSourceError):
    """Raised when boundary data was fetched but is not a usable FeatureCollection."""


def _is_url(source: Union[str, Path]) -> bool:
    return isinstance(source, str) and source.startswith(('http://', 'https://'))


def read_source_text(source: Union[str, Path]) -> str:
    """
    Read a text source from a URL or a local file.

    Args:
        source: http(s) URL or filesystem path

    Returns:
        The decoded text content
    """
    if _is_url(source):
        try:
            response = requests.get(source, timeout=REQUEST_TIMEOUT)
            response.raise_for_status()  # Raise an exception for bad status codes (4xx or 5xx)
        except requests.exceptions.RequestException as e:
            raise DataSourceError(f"Error downloading file from {source}: {e}") from e
        return response.content.decode('utf-8')

    try:
        return Path(source).read_text(encoding='utf-8')
    except OSError as e:
        raise DataSourceError(f"Error reading file {source}: {e}") from e


def read_tsv_records(source: Union[str, Path]) -> pd.DataFrame:
    """
    Load a tab-separated file with a header row into a DataFrame of strings.

    Every cell is kept as text (empty cells become ''); numeric conversion is
    left to the aggregator so bad values degrade to 0 instead of failing here.
    Rows with more fields than the header are cut to the header's width.
    """
    text = read_source_text(source)
    if not text.strip():
        return pd.DataFrame()

    width = len(text.lstrip('\r\n').splitlines()[0].split('\t'))
    truncated = []

    def truncate_row(fields):
        truncated.append(fields)
        return fields[:width]

    try:
        df = pd.read_csv(io.StringIO(text), sep='\t', dtype=str, engine='python',
                         keep_default_na=False, skip_blank_lines=True,
                         on_bad_lines=truncate_row)
    except pd.errors.ParserError as e:
        raise DataSourceError(f"Error parsing TSV data from {source}: {e}") from e
    if truncated:
        logger.warning(f"Cut {len(truncated)} rows with extra fields in {source}")
    logger.info(f"Loaded {len(df)} rows from {source}")
    return df


def load_records(sources: Sequence[Union[str, Path]]) -> pd.DataFrame:
    """
    Load and concatenate several TSV sources, preserving file and row order.

    Args:
        sources: Paths or URLs, read in the order given

    Returns:
        One DataFrame with the rows of every source
    """
    frames: List[pd.DataFrame] = [read_tsv_records(source) for source in sources]
    frames = [df for df in frames if not df.empty]
    if not frames:
        return pd.DataFrame()
    return pd.concat(frames, ignore_index=True)


def load_geojson(source: Union[str, Path]) -> dict:
    """
    Load a GeoJSON FeatureCollection from a URL or a local file.

    Raises DataSourceError if the source cannot be fetched, and its subclass
    GeoJSONFormatError if the content is not a FeatureCollection.
    """
    text = read_source_text(source)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise GeoJSONFormatError(f"Could not parse GeoJSON from {source}: {e}") from e
    if (not isinstance(data, dict) or data.get('type') != 'FeatureCollection'
            or not isinstance(data.get('features'), list)):
        raise GeoJSONFormatError(f"{source} is not a GeoJSON FeatureCollection")
    logger.info(f"Loaded {len(data['features'])} features from {source}")
    return data
