"""
Conversion of OSM JSON documents to the internal GeoData structure.

The accepted format is the OSM / Overpass JSON output:
https://wiki.openstreetmap.org/wiki/OSM_JSON

Two passes over the elements are made. The first only collects node
locations, because the chunk that a way lies in is determined by the
average location of its member nodes. Structural problems abort the
conversion at the first offending element; per-element problems such as
unknown node references are skipped silently.
"""

import json
import math
from typing import Any, Dict, List, Mapping, Optional, Union

import structlog

from .errors import DataFormat, DataSyntaxError
from .geography import (
    ZERO_OFFSET,
    Chunk,
    ChunkIndex,
    Feature,
    FeatureType,
    GeoData,
    GeoLocation,
    GeoNode,
    Offset,
)

logger = structlog.get_logger()

U64_LIMIT = 2**64


def _error(message: str) -> DataSyntaxError:
    return DataSyntaxError(message, format=DataFormat.OSM_JSON)


def _is_number(value: Any) -> bool:
    # bool is an int subclass but never a JSON number
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _finite_location(longitude: Any, latitude: Any) -> Optional[GeoLocation]:
    if not _is_number(longitude) or not _is_number(latitude):
        return None
    try:
        location = GeoLocation(float(longitude), float(latitude))
    except OverflowError:
        # Integers beyond the float range
        return None
    if not (math.isfinite(location.longitude) and math.isfinite(location.latitude)):
        return None
    return location


def _is_u64(value: Any) -> bool:
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and 0 <= value < U64_LIMIT
    )


def _get_elements(document: Any) -> List[Any]:
    if not isinstance(document, dict):
        raise _error("OSM JSON root must be an object")
    elements = document.get("elements")
    if not isinstance(elements, list):
        raise _error("OSM JSON root needs to have an `elements` key that is an array")
    return elements


def _get_element_object(element: Any) -> Dict[str, Any]:
    if not isinstance(element, dict):
        raise _error("an element in the `elements` array must be an object")
    return element


def _get_element_type(element: Dict[str, Any]) -> str:
    element_type = element.get("type")
    if not isinstance(element_type, str):
        raise _error("an element must have a `type` tag that is a string")
    return element_type


def _get_id(element: Dict[str, Any]) -> int:
    element_id = element.get("id")
    if not _is_u64(element_id):
        raise _error("an element must have an `id` tag that is a nonnegative integer")
    return element_id


def _get_tags(element: Dict[str, Any]) -> Dict[str, str]:
    """Return the tags of an element; missing tags are an empty map."""
    if "tags" not in element:
        return {}
    tags = element["tags"]
    if not isinstance(tags, dict):
        raise _error("`tags` field must be an object")
    for value in tags.values():
        if not isinstance(value, str):
            raise _error("`tags` field must be a map from strings to strings")
    return dict(tags)


def _get_way_nodes(element: Dict[str, Any]) -> List[int]:
    nodes = element.get("nodes")
    if not isinstance(nodes, list):
        raise _error('a "way" element must have a `nodes` key')
    if not all(_is_u64(node_id) for node_id in nodes):
        raise _error("`nodes` array must not contain non-integral values")
    return list(nodes)


def find_feature_type(tags: Mapping[str, str]) -> Optional[FeatureType]:
    """Classify a way by its tags; None means the way is not used."""
    if "building" in tags:
        return FeatureType.BUILDING
    if "waterway" in tags:
        return FeatureType.RIVER
    if "highway" in tags:
        return FeatureType.ROAD
    if "landuse" in tags:
        return FeatureType.LAND_USE
    if tags.get("natural") == "water":
        return FeatureType.LAKE
    return None


def collect_node_locations(document: Any) -> Dict[int, GeoLocation]:
    """
    First pass: the locations of all nodes that have a numeric lon and lat.

    Nodes without coordinates are skipped, and so are nodes whose
    coordinates do not fit a finite float. Integer coordinates are
    normalized to float.

    Raises:
        DataSyntaxError: if the root, an element, its type or a node id is malformed
    """
    node_locations: Dict[int, GeoLocation] = {}

    for element in _get_elements(document):
        element = _get_element_object(element)
        if _get_element_type(element) != "node":
            continue

        node_id = _get_id(element)
        longitude = element.get("lon")
        latitude = element.get("lat")
        location = _finite_location(longitude, latitude)
        if location is None:
            continue
        node_locations[node_id] = location

    return node_locations


def _average_location(
    node_ids: List[int], node_locations: Mapping[int, GeoLocation]
) -> Optional[GeoLocation]:
    located = [node_locations[node_id] for node_id in node_ids if node_id in node_locations]
    if not located:
        return None
    # Terms are scaled before summing so huge coordinates cannot overflow
    count = len(located)
    return GeoLocation(
        sum(location.longitude / count for location in located),
        sum(location.latitude / count for location in located),
    )


def convert_osm_json(
    document: Any,
    offset: Offset = ZERO_OFFSET,
    node_locations: Optional[Dict[int, GeoLocation]] = None,
) -> GeoData:
    """
    Convert a decoded OSM JSON document to GeoData.

    Nodes are added to a chunk only if they carry tags. Ways are classified
    by their tags and placed in the chunk of the average location of their
    resolvable member nodes; ways whose nodes are all unknown are dropped.
    Relations and unknown element types are ignored.

    Args:
        document: Decoded JSON value
        offset: Offset used to project locations for chunk placement
        node_locations: Result of collect_node_locations, if already computed

    Returns:
        GeoData with the node locations and the chunk map

    Raises:
        DataSyntaxError: on the first structural violation
    """
    if node_locations is None:
        node_locations = collect_node_locations(document)

    chunks: Dict[ChunkIndex, Chunk] = {}

    def chunk_at(location: GeoLocation) -> Chunk:
        index = ChunkIndex.from_point(location.project(offset))
        chunk = chunks.get(index)
        if chunk is None:
            chunk = chunks[index] = Chunk()
        return chunk

    for element in _get_elements(document):
        element = _get_element_object(element)
        element_type = _get_element_type(element)
        element_id = _get_id(element)
        tags = _get_tags(element)

        if element_type == "node":
            if not tags:
                continue
            location = node_locations.get(element_id)
            if location is None:
                raise _error("node has tags but no location")
            chunk_at(location).nodes[element_id] = GeoNode(tags=tags)

        elif element_type == "way":
            nodes = _get_way_nodes(element)
            feature_type = find_feature_type(tags)
            if feature_type is None:
                continue
            average = _average_location(nodes, node_locations)
            if average is None:
                continue
            chunk_at(average).features(feature_type)[element_id] = Feature(nodes=nodes, tags=tags)

        # "relation" (multipolygons) and unknown types are ignored

    logger.debug(
        "Converted OSM JSON",
        nodes=len(node_locations),
        chunks=len(chunks),
        features=sum(chunk.feature_count() for chunk in chunks.values()),
    )
    return GeoData(node_locations=node_locations, chunks=chunks)


def decode_json(text: Union[str, bytes], format: DataFormat = DataFormat.OSM_JSON) -> Any:
    """Decode JSON text, mapping syntax errors to DataSyntaxError.

    The NaN and Infinity literals that the json module would otherwise
    accept are not JSON and are rejected as well.
    """

    def reject_constant(name: str) -> Any:
        raise DataSyntaxError(f"Invalid number {name} in JSON", format=format)

    try:
        return json.loads(text, parse_constant=reject_constant)
    except json.JSONDecodeError as e:
        raise DataSyntaxError.from_json_error(e, format) from e
    except UnicodeDecodeError as e:
        raise DataSyntaxError("Data is not valid UTF-8", format=format) from e


def parse_osm_json(text: Union[str, bytes], offset: Offset = ZERO_OFFSET) -> GeoData:
    """Decode OSM JSON text and convert it to GeoData."""
    return convert_osm_json(decode_json(text), offset=offset)
