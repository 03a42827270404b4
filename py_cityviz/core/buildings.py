"""
Building attributes read from OSM tags.

Buildings in OSM often only say ``building=yes``. What the data does tell
us is collected in a PartialBuilding; the gaps are filled in later from
the land use area the building lies in and the size of its base.

See https://wiki.openstreetmap.org/wiki/Key:building and
https://wiki.openstreetmap.org/wiki/Key:roof:shape
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Mapping, Optional, Tuple

import numpy as np

from .geography import GLOBAL_SCALE_FACTOR, Feature, GeoLocation, Offset
from .simplification import Point, point_in_polygon, polygon_area, simplify_polygon

THRESHOLD_SIMPLIFICATION = 0.00001 * GLOBAL_SCALE_FACTOR * GLOBAL_SCALE_FACTOR
# Residential bases smaller than this are houses, otherwise apartments
THRESHOLD_APARTMENT_BASE_SIZE = 0.75 * GLOBAL_SCALE_FACTOR
# Bases smaller than this only get a single level
THRESHOLD_SMALL_BUILDING = 0.05 * GLOBAL_SCALE_FACTOR
# Non-residential buildings get one extra level per this much base area
THRESHOLD_NON_RESIDENTIAL_BUILDING = 0.25 * GLOBAL_SCALE_FACTOR

TAG_BUILDING_TYPE = "building"
TAG_BUILDING_LEVELS = "building:levels"
TAG_BUILDING_ROOF_SHAPE = "roof:shape"
TAG_BUILDING_ROOF_LEVELS = "roof:levels"


class BuildingParseError(ValueError):
    """The building tag is present but says nothing about the type (``yes``)."""


class BuildingType(Enum):
    APARTMENTS = "apartments"
    BARRACKS = "barracks"
    BUNGALOW = "bungalow"
    CABIN = "cabin"
    DETACHED = "detached"
    DORMITORY = "dormitory"
    FARM = "farm"
    HOTEL = "hotel"
    HOUSE = "house"
    HOUSEBOAT = "houseboat"
    RESIDENTIAL = "residential"
    SEMIDETACHED_HOUSE = "semidetached_house"
    STATIC_CARAVAN = "static_caravan"
    TERRACE = "terrace"
    COMMERCIAL = "commercial"
    INDUSTRIAL = "industrial"
    KIOSK = "kiosk"
    OFFICE = "office"
    RETAIL = "retail"
    SUPERMARKET = "supermarket"
    WAREHOUSE = "warehouse"
    BAKEHOUSE = "bakehouse"
    BRIDGE = "bridge"
    CIVIC = "civic"
    COLLEGE = "college"
    FIRE_STATION = "fire_station"
    GOVERNMENT = "government"
    HOSPITAL = "hospital"
    KINDERGARTEN = "kindergarten"
    MUSEUM = "museum"
    PUBLIC = "public"
    SCHOOL = "school"
    TOILETS = "toilets"
    TRAIN_STATION = "train_station"
    TRANSPORTATION = "transportation"
    UNIVERSITY = "university"
    OTHER = "other"

    @classmethod
    def parse(cls, value: str) -> "BuildingType":
        """Parse a building tag value; unknown values are OTHER.

        Raises:
            BuildingParseError: for ``yes``, which carries no type
        """
        if value == "yes":
            raise BuildingParseError("building=yes does not specify a type")
        if value == cls.OTHER.value:
            return cls.OTHER
        try:
            return cls(value)
        except ValueError:
            return cls.OTHER

    @classmethod
    def from_tag(cls, value: Optional[str]) -> Optional["BuildingType"]:
        """Like parse, but None when the type is absent or unspecified."""
        if value is None:
            return None
        try:
            return cls.parse(value)
        except BuildingParseError:
            return None


# Reasonable (min, max) number of levels per building type
LEVEL_RANGES = {
    BuildingType.HOUSE: (2, 2),
    BuildingType.APARTMENTS: (3, 6),
    BuildingType.COMMERCIAL: (1, 4),
    BuildingType.INDUSTRIAL: (2, 4),
    BuildingType.SCHOOL: (2, 4),
    BuildingType.BARRACKS: (1, 2),
    BuildingType.BUNGALOW: (1, 1),
    BuildingType.CABIN: (1, 1),
    BuildingType.DETACHED: (2, 3),
    BuildingType.DORMITORY: (2, 4),
    BuildingType.FARM: (1, 1),
    BuildingType.HOTEL: (3, 6),
    BuildingType.HOUSEBOAT: (1, 2),
    BuildingType.RESIDENTIAL: (2, 5),
    BuildingType.SEMIDETACHED_HOUSE: (2, 3),
    BuildingType.STATIC_CARAVAN: (1, 1),
    BuildingType.TERRACE: (2, 3),
    BuildingType.KIOSK: (1, 1),
    BuildingType.OFFICE: (2, 8),
    BuildingType.RETAIL: (2, 3),
    BuildingType.SUPERMARKET: (1, 1),
    BuildingType.WAREHOUSE: (2, 2),
    BuildingType.BAKEHOUSE: (1, 1),
    BuildingType.BRIDGE: (1, 1),
    BuildingType.CIVIC: (2, 4),
    BuildingType.COLLEGE: (2, 4),
    BuildingType.FIRE_STATION: (1, 2),
    BuildingType.GOVERNMENT: (2, 4),
    BuildingType.HOSPITAL: (2, 6),
    BuildingType.KINDERGARTEN: (1, 2),
    BuildingType.MUSEUM: (1, 3),
    BuildingType.PUBLIC: (2, 4),
    BuildingType.TOILETS: (1, 1),
    BuildingType.TRAIN_STATION: (1, 3),
    BuildingType.TRANSPORTATION: (1, 3),
    BuildingType.UNIVERSITY: (2, 6),
    BuildingType.OTHER: (1, 1),
}

# Types whose height is capped by the size of their base
SIZE_CAPPED_TYPES = frozenset(
    {
        BuildingType.INDUSTRIAL,
        BuildingType.COMMERCIAL,
        BuildingType.RETAIL,
        BuildingType.WAREHOUSE,
        BuildingType.SUPERMARKET,
        BuildingType.OFFICE,
        BuildingType.TRANSPORTATION,
        BuildingType.CIVIC,
    }
)


def level_range(building_type: BuildingType) -> Tuple[int, int]:
    return LEVEL_RANGES[building_type]


class RoofShape(Enum):
    FLAT = "flat"
    GABLED = "gabled"
    SHED = "shed"
    HIPPED = "hipped"
    GAMBREL = "gambrel"
    MANSARD = "mansard"

    @classmethod
    def from_tag(cls, value: Optional[str]) -> "RoofShape":
        """Parse a roof:shape tag value. Never fails; defaults to FLAT."""
        try:
            return cls(value)
        except ValueError:
            return cls.FLAT


class BuildingLandUseType(Enum):
    """Land use around a building, used to guess its type."""

    COMMERCIAL = "commercial"
    EDUCATION = "education"
    INDUSTRIAL = "industrial"
    RESIDENTIAL = "residential"
    UNKNOWN = "unknown"
    # The building type is already known, so land use is not needed
    NOT_NECESSARY = "not_necessary"

    @classmethod
    def from_tag(cls, value: Optional[str]) -> "BuildingLandUseType":
        """Parse a landuse tag value. Never fails; defaults to UNKNOWN."""
        if value == "retail":
            return cls.COMMERCIAL
        if value in ("commercial", "education", "industrial", "residential"):
            return cls(value)
        return cls.UNKNOWN


@dataclass
class PartialBuilding:
    """A building filled in only with what the data says."""

    id: int
    building_type: Optional[BuildingType]
    levels: Optional[int]
    base: List[Point]
    roof_shape: Optional[RoofShape]
    roof_levels: Optional[int]
    inside_area: BuildingLandUseType


def _parse_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def partial_building_from_feature(
    building_id: int, feature: Feature, base: List[Point]
) -> PartialBuilding:
    """Read the building tags of a feature. ``base`` should be counter-clockwise."""
    tags = feature.tags
    building_type = BuildingType.from_tag(tags.get(TAG_BUILDING_TYPE))
    roof_shape_tag = tags.get(TAG_BUILDING_ROOF_SHAPE)

    return PartialBuilding(
        id=building_id,
        building_type=building_type,
        levels=_parse_int(tags.get(TAG_BUILDING_LEVELS)),
        base=base,
        roof_shape=RoofShape.from_tag(roof_shape_tag) if roof_shape_tag is not None else None,
        roof_levels=_parse_int(tags.get(TAG_BUILDING_ROOF_LEVELS)),
        inside_area=(
            BuildingLandUseType.NOT_NECESSARY
            if building_type is not None
            else BuildingLandUseType.UNKNOWN
        ),
    )


def building_land_use_areas(
    land_use_features: Mapping[int, Feature],
    node_locations: Mapping[int, GeoLocation],
    offset: Offset,
) -> List[Tuple[List[Point], BuildingLandUseType]]:
    """
    Land use polygons that say something about the buildings inside them.

    Polygons are projected, simplified and ordered by vertex count (a proxy
    for size), largest first.
    """
    areas = []
    for feature in land_use_features.values():
        land_use_type = BuildingLandUseType.from_tag(feature.tags.get("landuse"))
        if land_use_type is BuildingLandUseType.UNKNOWN:
            continue

        polygon = [
            tuple(node_locations[node_id].project(offset))
            for node_id in feature.nodes
            if node_id in node_locations
        ]
        areas.append((simplify_polygon(polygon, THRESHOLD_SIMPLIFICATION), land_use_type))

    areas.sort(key=lambda area: len(area[0]), reverse=True)
    return areas


def assign_land_use(
    buildings: List[PartialBuilding],
    areas: List[Tuple[List[Point], BuildingLandUseType]],
) -> None:
    """Set ``inside_area`` for buildings whose type is still unknown."""
    for building in buildings:
        if building.building_type is not None or not building.base:
            continue
        if building.inside_area is not BuildingLandUseType.UNKNOWN:
            continue
        for polygon, land_use_type in areas:
            if len(polygon) >= 3 and point_in_polygon(polygon, building.base[0]):
                building.inside_area = land_use_type
                break


def infer_building_type(building: PartialBuilding) -> BuildingType:
    """The tagged type, or a guess from the land use and base size."""
    if building.building_type is not None:
        return building.building_type

    inside_area = building.inside_area
    if inside_area is BuildingLandUseType.RESIDENTIAL:
        if polygon_area(building.base) < THRESHOLD_APARTMENT_BASE_SIZE:
            return BuildingType.HOUSE
        return BuildingType.APARTMENTS
    if inside_area is BuildingLandUseType.COMMERCIAL:
        return BuildingType.COMMERCIAL
    if inside_area is BuildingLandUseType.INDUSTRIAL:
        return BuildingType.INDUSTRIAL
    if inside_area is BuildingLandUseType.EDUCATION:
        return BuildingType.SCHOOL
    return BuildingType.OTHER


def choose_levels(
    building: PartialBuilding,
    building_type: BuildingType,
    rng: Optional[np.random.Generator] = None,
) -> int:
    """Number of levels: tagged, or random within the range for the type."""
    if building.levels is not None:
        return building.levels

    area = polygon_area(building.base)
    if area < THRESHOLD_SMALL_BUILDING:
        return 1

    rng = rng if rng is not None else np.random.default_rng()
    low, high = level_range(building_type)
    levels = int(rng.integers(low, high + 1))

    if building_type in SIZE_CAPPED_TYPES:
        cap = math.floor(area / THRESHOLD_NON_RESIDENTIAL_BUILDING) + 1
        levels = min(levels, cap)
    return levels
