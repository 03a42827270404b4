"""
Queries for loading external geographic data.

A query is only a description of what to load: it is not checked for
syntax, and the resources it names may not exist.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Union

from .errors import DataFormat, InputSyntaxError

# Finds all ways of interest in the named area, then appends their nodes.
# `out body` outputs all tags.
CITY_QUERY_TEMPLATE = """[out:json];
area[name="{name}"]->.searchArea;
(
    way["highway"](area.searchArea);
    way["building"](area.searchArea);
    way["landuse"](area.searchArea);
    way["natural"="water"](area.searchArea);
    way["waterway"~"river|stream|canal|ditch"](area.searchArea);
)->.result;
(.result; .result >;);
out body;"""


class InputQueryType(Enum):
    """What kind of text the user typed as a query."""

    CITY = "city"
    FILE = "file"
    OVERPASS = "overpass"


@dataclass(frozen=True)
class OverpassQuery:
    """Overpass QL query; the response is expected to be OSM JSON."""

    value: str


@dataclass(frozen=True)
class FileQuery:
    format: DataFormat
    file_path: Path


DataQuery = Union[OverpassQuery, FileQuery]


def parse_data_query(query_type: InputQueryType, text: str) -> DataQuery:
    """
    Convert a user's query text into a DataQuery.

    City names become Overpass queries. File queries pick their format from
    the file extension.

    Raises:
        InputSyntaxError: if the text cannot be turned into a query
    """
    if query_type is InputQueryType.CITY:
        if '"' in text:
            raise InputSyntaxError("city query may not contain quotes")
        return OverpassQuery(CITY_QUERY_TEMPLATE.format(name=text))

    if query_type is InputQueryType.OVERPASS:
        return OverpassQuery(text)

    file_path = Path(text)
    extension = file_path.suffix
    if extension == ".json":
        return FileQuery(DataFormat.OSM_JSON, file_path)
    if extension == ".geojson":
        return FileQuery(DataFormat.GEOJSON, file_path)
    if extension:
        raise InputSyntaxError(f"unsupported file extension {extension[1:]!r}")
    raise InputSyntaxError("file without file extension")
