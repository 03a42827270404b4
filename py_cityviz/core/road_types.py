"""
Road categories and directions read from OSM tags.

See https://wiki.openstreetmap.org/wiki/Key:highway and
https://wiki.openstreetmap.org/wiki/Key:oneway
"""

from enum import Enum
from typing import Optional


class RoadType(Enum):
    """All road types from the highway tag that are told apart."""

    MOTORWAY = "motorway"
    TRUNK = "trunk"
    PRIMARY = "primary"
    SECONDARY = "secondary"
    TERTIARY = "tertiary"
    UNCLASSIFIED = "unclassified"
    RESIDENTIAL = "residential"

    # Link roads connect other roads, e.g. motorway ramps
    MOTORWAY_LINK = "motorway_link"
    TRUNK_LINK = "trunk_link"
    PRIMARY_LINK = "primary_link"
    SECONDARY_LINK = "secondary_link"
    TERTIARY_LINK = "tertiary_link"

    # Paths, mainly or exclusively for pedestrians
    FOOTWAY = "footway"
    STEPS = "steps"
    PATH = "path"

    # Roads that have a highway tag we do not model
    NOT_COVERED = "not_covered"

    @classmethod
    def from_tag(cls, value: Optional[str]) -> "RoadType":
        """Parse a highway tag value. Never fails; unknown values are NOT_COVERED."""
        if value is None:
            return cls.NOT_COVERED
        road_type = _ROAD_TYPES_BY_TAG.get(value.lower())
        return road_type if road_type is not None else cls.NOT_COVERED


_ROAD_TYPES_BY_TAG = {
    road_type.value: road_type for road_type in RoadType if road_type is not RoadType.NOT_COVERED
}


class OneWay(Enum):
    """Whether a road is two-way, one-way, or one-way against its node order."""

    YES = "yes"
    NO = "no"
    REVERSED = "reversed"

    @classmethod
    def from_tag(cls, value: Optional[str]) -> "OneWay":
        """Parse a oneway tag value. Never fails; unknown values are two-way."""
        if value in ("yes", "true", "1"):
            return cls.YES
        if value in ("-1", "reverse"):
            return cls.REVERSED
        return cls.NO
