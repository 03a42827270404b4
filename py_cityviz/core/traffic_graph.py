"""
Directed road graph for agents to travel through the world.

Vertices are stored contiguously and referenced by integer handles; a map
from OSM node id to handle guarantees one vertex per node. Edges carry
their planar length and road type, and parallel edges are allowed.
"""

import heapq
import itertools
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import numpy as np
import structlog

from .agents import REFERENCE_SPEED, AgentType, agent_speed, is_road_type_allowed, max_agent_speed
from .errors import MissingDataError
from .geography import Feature, GeoLocation, Offset, Vec2
from .road_types import OneWay, RoadType

logger = structlog.get_logger()

# Cost multiplier for edges whose road type is not allowed for the agent
COST_MULTIPLIER_DISALLOWED = 100.0


@dataclass(frozen=True)
class Edge:
    source: int
    target: int
    distance: float
    road_type: RoadType


class TrafficGraph:
    """Directed graph weighted by distance, with the road type on each edge."""

    def __init__(self):
        self._vertices: List[Vec2] = []
        self._osm_ids: List[int] = []
        self._edges: List[Edge] = []
        self._outgoing: List[List[int]] = []
        self._id_map: Dict[int, int] = {}

    def add_node(self, osm_id: int, location: Vec2) -> int:
        """Add a vertex for an OSM node, or return the existing one."""
        index = self._id_map.get(osm_id)
        if index is not None:
            return index

        index = len(self._vertices)
        self._vertices.append(location)
        self._osm_ids.append(osm_id)
        self._outgoing.append([])
        self._id_map[osm_id] = index
        return index

    def _add_edge(self, source: int, target: int, distance: float, road_type: RoadType) -> None:
        self._outgoing[source].append(len(self._edges))
        self._edges.append(Edge(source, target, distance, road_type))

    def add_connection(
        self,
        from_id: int,
        from_location: Vec2,
        to_id: int,
        to_location: Vec2,
        oneway: OneWay,
        road_type: RoadType,
    ) -> None:
        """Connect two OSM nodes, adding them as vertices if necessary.

        Existing edges between the same pair are not checked for.
        """
        distance = from_location.distance_to(to_location)
        source = self.add_node(from_id, from_location)
        target = self.add_node(to_id, to_location)

        if oneway is OneWay.YES:
            self._add_edge(source, target, distance, road_type)
        elif oneway is OneWay.REVERSED:
            self._add_edge(target, source, distance, road_type)
        else:
            self._add_edge(source, target, distance, road_type)
            self._add_edge(target, source, distance, road_type)

    def get_index(self, osm_id: int) -> Optional[int]:
        """Handle of the vertex for an OSM node id, if there is one."""
        return self._id_map.get(osm_id)

    def get_osm_id(self, index: int) -> int:
        return self._osm_ids[index]

    def get_size(self) -> int:
        return len(self._vertices)

    def edge_count(self) -> int:
        return len(self._edges)

    def get_node_location(self, index: int) -> Vec2:
        return self._vertices[index]

    def edges(self) -> Iterable[Edge]:
        return iter(self._edges)

    def get_random_node_index(self, rng: np.random.Generator) -> int:
        if not self._vertices:
            raise MissingDataError("traffic graph has no vertices")
        return int(rng.integers(0, len(self._vertices)))

    def get_road_type(self, from_index: int, to_index: int) -> RoadType:
        """Road type of the first edge between two vertices, NOT_COVERED if none."""
        for edge_index in self._outgoing[from_index]:
            edge = self._edges[edge_index]
            if edge.target == to_index:
                return edge.road_type
        return RoadType.NOT_COVERED

    def edge_cost(self, edge: Edge, agent_type: AgentType) -> float:
        """Travel cost of an edge for an agent class."""
        weight = edge.distance
        if not is_road_type_allowed(edge.road_type, agent_type):
            weight *= COST_MULTIPLIER_DISALLOWED
        return weight / agent_speed(REFERENCE_SPEED, agent_type, edge.road_type)

    def find_route(
        self, from_index: int, to_index: int, agent_type: AgentType
    ) -> Optional[Tuple[float, List[int]]]:
        """
        A* search between two vertex handles.

        The heuristic is the straight-line distance to the goal divided by
        the fastest speed of the agent class, so it never overestimates.

        Returns:
            Tuple of (total cost, vertex handles from start to goal), or
            None if the goal cannot be reached
        """
        goal_location = self._vertices[to_index]
        fastest = max_agent_speed(REFERENCE_SPEED, agent_type)

        def heuristic(index: int) -> float:
            location = self._vertices[index]
            return math.hypot(goal_location.x - location.x, goal_location.y - location.y) / fastest

        best_cost = {from_index: 0.0}
        came_from: Dict[int, int] = {}
        closed = set()
        tie_breaker = itertools.count()
        queue = [(heuristic(from_index), next(tie_breaker), from_index)]

        while queue:
            _, _, current = heapq.heappop(queue)
            if current == to_index:
                return best_cost[current], self._reconstruct(came_from, current)
            if current in closed:
                continue
            closed.add(current)

            for edge_index in self._outgoing[current]:
                edge = self._edges[edge_index]
                if edge.target in closed:
                    continue
                cost = best_cost[current] + self.edge_cost(edge, agent_type)
                if cost < best_cost.get(edge.target, float("inf")):
                    best_cost[edge.target] = cost
                    came_from[edge.target] = current
                    heapq.heappush(
                        queue, (cost + heuristic(edge.target), next(tie_breaker), edge.target)
                    )

        return None

    @staticmethod
    def _reconstruct(came_from: Mapping[int, int], current: int) -> List[int]:
        path = [current]
        while current in came_from:
            current = came_from[current]
            path.append(current)
        path.reverse()
        return path

    def get_shortest_path(
        self, from_index: int, to_index: int, agent_type: AgentType
    ) -> Optional[List[int]]:
        """Shortest path between two vertex handles, or None if unreachable.

        Handles must exist in the graph.
        """
        route = self.find_route(from_index, to_index, agent_type)
        if route is None:
            return None
        return route[1]

    def reset(self) -> None:
        self._vertices.clear()
        self._osm_ids.clear()
        self._edges.clear()
        self._outgoing.clear()
        self._id_map.clear()


def update_traffic_graph(
    node_locations: Mapping[int, GeoLocation],
    road_features: Mapping[int, Feature],
    graph: TrafficGraph,
    offset: Offset,
) -> None:
    """
    Add the roads of one chunk to the traffic graph.

    Consecutive nodes of a road are connected. Nodes with an unknown
    location are skipped without breaking the chain, so the edge goes from
    the last known node to the next known one.
    """
    for road in road_features.values():
        oneway = OneWay.from_tag(road.tags.get("oneway"))
        road_type = RoadType.from_tag(road.tags.get("highway"))

        last_id: Optional[int] = None
        last_location: Optional[Vec2] = None

        for node_id in road.nodes:
            geolocation = node_locations.get(node_id)
            if geolocation is None:
                continue
            location = geolocation.project(offset)

            graph.add_node(node_id, location)
            if last_id is not None:
                graph.add_connection(last_id, last_location, node_id, location, oneway, road_type)

            last_id = node_id
            last_location = location
