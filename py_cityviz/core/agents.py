"""
Agent classes that use the traffic graph, and the per-class road tables.

Cars and pedestrians share one graph but may not use every road type, and
they travel at different speeds depending on the road.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

import numpy as np
import structlog

from .geography import GLOBAL_SCALE_FACTOR, Vec2
from .road_types import RoadType

if TYPE_CHECKING:
    from .traffic_graph import TrafficGraph

logger = structlog.get_logger()

# Speed of a pedestrian, about 5 km/h in real life
REFERENCE_SPEED = 0.01 * GLOBAL_SCALE_FACTOR


class AgentType(Enum):
    CAR = "car"
    PEDESTRIAN = "pedestrian"


ALLOWED_ROAD_TYPES = {
    AgentType.CAR: frozenset(
        {
            RoadType.MOTORWAY,
            RoadType.TRUNK,
            RoadType.PRIMARY,
            RoadType.SECONDARY,
            RoadType.TERTIARY,
            RoadType.RESIDENTIAL,
            RoadType.MOTORWAY_LINK,
            RoadType.TRUNK_LINK,
            RoadType.PRIMARY_LINK,
            RoadType.SECONDARY_LINK,
            RoadType.TERTIARY_LINK,
            RoadType.NOT_COVERED,
        }
    ),
    AgentType.PEDESTRIAN: frozenset(
        {
            RoadType.TERTIARY,
            RoadType.RESIDENTIAL,
            RoadType.FOOTWAY,
            RoadType.STEPS,
            RoadType.PATH,
            RoadType.UNCLASSIFIED,
            RoadType.NOT_COVERED,
        }
    ),
}

# Car speed as a multiple of the reference speed
CAR_SPEED_MULTIPLIERS = {
    RoadType.MOTORWAY: 24.0,
    RoadType.TRUNK: 24.0,
    RoadType.PRIMARY: 20.0,
    RoadType.SECONDARY: 16.0,
    RoadType.TERTIARY: 12.0,
    RoadType.RESIDENTIAL: 6.0,  # about 30 km/h
    RoadType.UNCLASSIFIED: 6.0,
}
DEFAULT_CAR_SPEED_MULTIPLIER = 6.0


def is_road_type_allowed(road_type: RoadType, agent_type: AgentType) -> bool:
    return road_type in ALLOWED_ROAD_TYPES[agent_type]


def agent_speed(reference_speed: float, agent_type: AgentType, road_type: RoadType) -> float:
    """Travel speed of an agent class on a road type."""
    if agent_type is AgentType.CAR:
        multiplier = CAR_SPEED_MULTIPLIERS.get(road_type, DEFAULT_CAR_SPEED_MULTIPLIER)
        return multiplier * reference_speed
    return reference_speed


def max_agent_speed(reference_speed: float, agent_type: AgentType) -> float:
    """Fastest speed an agent class reaches on any road type."""
    return max(agent_speed(reference_speed, agent_type, road_type) for road_type in RoadType)


@dataclass
class AgentRoute:
    """A planned trip of one agent through the traffic graph."""

    agent_type: AgentType
    start: int
    destination: int
    path: List[int]
    start_location: Vec2


def create_agents(
    count: int,
    graph: "TrafficGraph",
    rng: Optional[np.random.Generator] = None,
    car_share: float = 0.5,
) -> List[AgentRoute]:
    """
    Plan routes for up to ``count`` agents between random vertices.

    Pairs that lie in different connected components have no route and are
    skipped, so fewer agents than requested may be returned.
    """
    if count <= 0 or graph.get_size() == 0:
        return []
    rng = rng if rng is not None else np.random.default_rng()

    agents = []
    for _ in range(count):
        start = graph.get_random_node_index(rng)
        destination = graph.get_random_node_index(rng)
        agent_type = AgentType.CAR if rng.random() < car_share else AgentType.PEDESTRIAN

        path = graph.get_shortest_path(start, destination, agent_type)
        if path is None:
            continue

        agents.append(
            AgentRoute(
                agent_type=agent_type,
                start=start,
                destination=destination,
                path=path,
                start_location=graph.get_node_location(start),
            )
        )

    logger.debug("Created agents", requested=count, created=len(agents))
    return agents
