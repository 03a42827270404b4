"""
In-memory geographic data structures and the planar projection.

Raw survey data is kept as longitude/latitude pairs. Anything that is
rendered or routed on is projected onto a plane relative to the active
Offset, and bucketed into square chunks of CHUNK_SIZE world units.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Mapping, NamedTuple, Tuple

import numpy as np

GLOBAL_SCALE_FACTOR = 100.0

LONGITUDAL_SCALE_FACTOR = 64000.0 * GLOBAL_SCALE_FACTOR
LATITUDAL_SCALE_FACTOR = 64000.0 * GLOBAL_SCALE_FACTOR

CHUNK_SIZE = 8.0 * GLOBAL_SCALE_FACTOR

# Chunk indices saturate to the range of a 64-bit integer
CHUNK_INDEX_MIN = -(2**63)
CHUNK_INDEX_MAX = 2**63 - 1

# Euclidean distance from Eindhoven to Izmir in unscaled projected units
MAX_RECENTER_DISTANCE = 0.083291353581523


class Vec2(NamedTuple):
    """A single precision point on the XZ plane."""

    x: float
    y: float

    def distance_to(self, other: "Vec2") -> float:
        return float(np.float32(math.hypot(other.x - self.x, other.y - self.y)))


@dataclass(frozen=True)
class Offset:
    """Unscaled projection origin. Replaced wholesale, never mutated."""

    x: float
    y: float

    def distance_to(self, other: "Offset") -> float:
        return math.hypot(other.x - self.x, other.y - self.y)


# Before any data is loaded there is no origin, so the first batch recentres
UNSET_OFFSET = Offset(-math.inf, -math.inf)
ZERO_OFFSET = Offset(0.0, 0.0)


@dataclass(frozen=True)
class GeoLocation:
    """A single point on the surface of the earth."""

    longitude: float  # west to east
    latitude: float  # north to south

    def project_no_scale(self) -> Tuple[float, float]:
        """Project into [0, 1) x [0, 1) without offset or scaling.

        Used to compute candidate offsets for recentring.
        """
        x = (self.longitude + 180.0) / 360.0
        lat_radians = self.latitude / 180.0 * math.pi
        y = (1.0 - math.asinh(math.tan(lat_radians)) / math.pi) / 2.0
        return x, y

    def project(self, offset: Offset) -> Vec2:
        """Convert to XZ world coordinates relative to ``offset``.

        Longitude maps linearly, latitude goes through a Mercator-like
        transform. The result is narrowed to float32 for rendering.
        """
        unscaled_x, unscaled_y = self.project_no_scale()
        x = (unscaled_x - offset.x) * LONGITUDAL_SCALE_FACTOR
        y = (unscaled_y - offset.y) * LATITUDAL_SCALE_FACTOR
        return Vec2(float(np.float32(x)), float(np.float32(y)))


def project(location: GeoLocation, offset: Offset) -> Vec2:
    return location.project(offset)


def project_no_scale(location: GeoLocation) -> Tuple[float, float]:
    return location.project_no_scale()


class ChunkIndex(NamedTuple):
    """Integer tile coordinate of a chunk."""

    x: int
    z: int

    @classmethod
    def from_point(cls, point: Vec2) -> "ChunkIndex":
        """Index of the chunk that the 2D world coordinates lie inside of.

        Coordinates beyond the float32 range land in the outermost chunk
        of their direction, and NaN lands in chunk 0.
        """
        return cls(_chunk_coordinate(point.x), _chunk_coordinate(point.y))


def _chunk_coordinate(value: float) -> int:
    scaled = value / CHUNK_SIZE
    if math.isnan(scaled):
        return 0
    if math.isinf(scaled):
        return CHUNK_INDEX_MAX if scaled > 0 else CHUNK_INDEX_MIN
    return min(max(math.floor(scaled), CHUNK_INDEX_MIN), CHUNK_INDEX_MAX)


class FeatureType(Enum):
    BUILDING = "building"
    ROAD = "road"
    LAND_USE = "land_use"
    LAKE = "lake"
    RIVER = "river"


@dataclass
class Feature:
    """A way-based map feature: an ordered list of node ids plus tags.

    Node ids are not guaranteed to resolve to a known location.
    """

    nodes: List[int]
    tags: Dict[str, str] = field(default_factory=dict)


@dataclass
class GeoNode:
    """A single point on earth that carries some associated information."""

    tags: Dict[str, str]


@dataclass
class Chunk:
    """The nodes and features that lie within a chunk."""

    nodes: Dict[int, GeoNode] = field(default_factory=dict)
    building_features: Dict[int, Feature] = field(default_factory=dict)
    road_features: Dict[int, Feature] = field(default_factory=dict)
    land_use_features: Dict[int, Feature] = field(default_factory=dict)
    lake_features: Dict[int, Feature] = field(default_factory=dict)
    river_features: Dict[int, Feature] = field(default_factory=dict)

    def features(self, feature_type: FeatureType) -> Dict[int, Feature]:
        if feature_type is FeatureType.BUILDING:
            return self.building_features
        if feature_type is FeatureType.ROAD:
            return self.road_features
        if feature_type is FeatureType.LAND_USE:
            return self.land_use_features
        if feature_type is FeatureType.LAKE:
            return self.lake_features
        return self.river_features

    def feature_count(self) -> int:
        return sum(len(self.features(t)) for t in FeatureType)

    def merge(self, other: "Chunk") -> None:
        """Add everything in ``other`` to this chunk, newer entries win."""
        self.nodes.update(other.nodes)
        for feature_type in FeatureType:
            self.features(feature_type).update(other.features(feature_type))


@dataclass
class GeoData:
    """A collection of geographic data from one ingested batch."""

    node_locations: Dict[int, GeoLocation]
    chunks: Dict[ChunkIndex, Chunk]

    def is_empty(self) -> bool:
        """Whether there are no nodes and no features."""
        return not self.node_locations and not self.chunks

    def iter_features(
        self, feature_type: FeatureType
    ) -> Iterator[Tuple[ChunkIndex, int, Feature]]:
        for index, chunk in self.chunks.items():
            for feature_id, feature in chunk.features(feature_type).items():
                yield index, feature_id, feature


def find_bounds(
    node_locations: Mapping[int, GeoLocation],
) -> Tuple[GeoLocation, GeoLocation, GeoLocation]:
    """
    Find the bounding corners and median location of a set of nodes.

    The median is the location whose ``latitude + longitude`` is the median
    of all sums; for an even count the lower middle element is taken. A
    single far-flung node therefore cannot drag the result around the way
    it would drag a mean.

    Returns:
        Tuple of (min corner, median location, max corner)
    """
    if not node_locations:
        origin = GeoLocation(0.0, 0.0)
        return origin, origin, origin

    locations = list(node_locations.values())
    longitudes = np.array([loc.longitude for loc in locations], dtype=np.float64)
    latitudes = np.array([loc.latitude for loc in locations], dtype=np.float64)

    # Stable sort keeps input order between equal sums
    order = np.argsort(latitudes + longitudes, kind="stable")
    mid = len(locations) // 2
    if len(locations) % 2 == 0:
        mid -= 1
    median = locations[int(order[mid])]

    min_corner = GeoLocation(float(longitudes.min()), float(latitudes.min()))
    max_corner = GeoLocation(float(longitudes.max()), float(latitudes.max()))
    return min_corner, median, max_corner
