"""
Execute data queries: read files or fetch from the Overpass API.

This is the only place in the core that performs blocking I/O.
"""

from typing import Any, Optional

import requests
import structlog

from ..config import Settings, settings as default_settings
from .errors import DataFormat, InputSyntaxError, IoError
from .geography import ZERO_OFFSET, GeoData, Offset
from .osm_parser import convert_osm_json, decode_json
from .query import DataQuery, FileQuery, OverpassQuery

logger = structlog.get_logger()


def _fetch_overpass(query: OverpassQuery, settings: Settings) -> str:
    url = settings.overpass_url
    logger.info("Fetching Overpass data", url=url, query_length=len(query.value))

    try:
        response = requests.post(
            url,
            data={"data": query.value},
            timeout=settings.request_timeout_seconds,
        )
    except requests.RequestException as e:
        logger.error("Overpass request failed", url=url, error=str(e))
        raise IoError(str(e), url=url) from e

    if not response.ok:
        logger.error("Overpass request rejected", url=url, status=response.status_code)
        raise IoError(response.reason or "request failed", url=url, status=response.status_code)

    logger.info("Fetched Overpass data", url=url, size=len(response.content))
    return response.text


def _read_file(query: FileQuery) -> str:
    logger.info("Reading data file", path=str(query.file_path), format=str(query.format))
    try:
        with open(query.file_path, "r", encoding="utf-8") as f:
            return f.read()
    except OSError as e:
        raise IoError.from_os_error(e, query.file_path) from e


def load_document(query: DataQuery, settings: Optional[Settings] = None) -> str:
    """
    Load the raw text a query points at.

    Raises:
        IoError: if the file cannot be read or the request fails
    """
    settings = settings if settings is not None else default_settings
    if isinstance(query, OverpassQuery):
        return _fetch_overpass(query, settings)
    return _read_file(query)


def load_osm_json(query: DataQuery, settings: Optional[Settings] = None) -> Any:
    """Load the data of a query and decode it as OSM JSON.

    Raises:
        InputSyntaxError: for GeoJSON queries, which are not supported
    """
    if isinstance(query, FileQuery) and query.format is DataFormat.GEOJSON:
        raise InputSyntaxError("geojson data is not supported")
    return decode_json(load_document(query, settings))


def load_geo_data(
    query: DataQuery,
    settings: Optional[Settings] = None,
    offset: Offset = ZERO_OFFSET,
) -> GeoData:
    """Load and convert the data of a query."""
    return convert_osm_json(load_osm_json(query, settings), offset=offset)
