"""
The world: everything ingested so far, and the projection offset it lives in.

Batches of OSM data are ingested one at a time. A batch whose median lies
far from the current offset recentres the world, which discards all
previously ingested data since its coordinates would no longer be usable.
"""

import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import numpy as np
import structlog

from .agents import AgentRoute, AgentType, create_agents
from .buildings import (
    BuildingType,
    RoofShape,
    assign_land_use,
    building_land_use_areas,
    choose_levels,
    infer_building_type,
    partial_building_from_feature,
)
from .errors import MissingDataError
from .geography import (
    MAX_RECENTER_DISTANCE,
    UNSET_OFFSET,
    Chunk,
    ChunkIndex,
    FeatureType,
    GeoLocation,
    Offset,
    Vec2,
    find_bounds,
)
from .osm_parser import collect_node_locations, convert_osm_json, decode_json
from .simplification import counterclockwise
from .traffic_graph import TrafficGraph, update_traffic_graph

logger = structlog.get_logger()


@dataclass
class IngestReport:
    """What happened when a batch was ingested."""

    recentred: bool
    offset: Offset
    nodes: int
    chunks: int
    features: int
    graph_size_before: int
    graph_size_after: int
    agents_spawned: int


@dataclass
class WorldState:
    """Counts describing the world at one moment. offset is None before any batch."""

    offset: Optional[Offset]
    batches: int
    chunks: int
    nodes: int
    graph_vertices: int
    graph_edges: int
    agents: int


@dataclass
class ChunkState:
    index: ChunkIndex
    nodes: int
    features: Dict[FeatureType, int]


@dataclass
class Route:
    cost: float
    osm_ids: List[int]
    locations: List[Vec2]


@dataclass
class BuildingSummary:
    id: int
    building_type: BuildingType
    levels: int
    roof_shape: RoofShape
    base: List[Tuple[float, float]]


class World:
    """Owns the offset, the merged chunks, the traffic graph and the agents.

    All mutation and routing is serialized by one lock.
    """

    def __init__(
        self,
        max_recenter_distance: float = MAX_RECENTER_DISTANCE,
        vertices_per_agent: int = 100,
        car_share: float = 0.5,
        rng: Optional[np.random.Generator] = None,
    ):
        self.max_recenter_distance = max_recenter_distance
        self.vertices_per_agent = vertices_per_agent
        self.car_share = car_share
        self.rng = rng if rng is not None else np.random.default_rng()

        self.offset: Offset = UNSET_OFFSET
        self.chunks: Dict[ChunkIndex, Chunk] = {}
        self.node_locations: Dict[int, GeoLocation] = {}
        self.traffic_graph = TrafficGraph()
        self.agents: List[AgentRoute] = []
        self.batches = 0
        self._lock = threading.Lock()

    def plan_offset(self, node_locations: Mapping[int, GeoLocation]) -> Tuple[Offset, bool]:
        """
        Decide which offset a batch with these nodes would be placed with.

        The candidate is the unscaled projection of the median location. It
        replaces the current offset only if it is further away than the
        recentre threshold. Nothing is changed here.

        Returns:
            Tuple of (offset to use, whether that is a recentre)
        """
        _, median, _ = find_bounds(node_locations)
        candidate = Offset(*median.project_no_scale())
        if candidate.distance_to(self.offset) > self.max_recenter_distance:
            return candidate, True
        return self.offset, False

    def _clear(self) -> None:
        self.chunks.clear()
        self.node_locations.clear()
        self.traffic_graph.reset()
        self.agents.clear()

    def ingest(self, document: Any) -> IngestReport:
        """
        Add a decoded OSM JSON document to the world.

        The document is fully converted before anything is changed, so a
        malformed batch leaves the world as it was.

        Raises:
            DataSyntaxError: if the document is malformed
            MissingDataError: if the document has no located nodes
        """
        with self._lock:
            node_locations = collect_node_locations(document)
            if not node_locations:
                raise MissingDataError("no nodes with a location in data")

            offset, recentre = self.plan_offset(node_locations)
            geo_data = convert_osm_json(document, offset=offset, node_locations=node_locations)

            if recentre:
                logger.info(
                    "Recentring world",
                    old_offset=(self.offset.x, self.offset.y),
                    new_offset=(offset.x, offset.y),
                )
                self._clear()
                self.offset = offset

            self.node_locations.update(geo_data.node_locations)
            for index, chunk in geo_data.chunks.items():
                existing = self.chunks.get(index)
                if existing is None:
                    self.chunks[index] = chunk
                else:
                    existing.merge(chunk)

            size_before = self.traffic_graph.get_size()
            for chunk in geo_data.chunks.values():
                update_traffic_graph(
                    self.node_locations, chunk.road_features, self.traffic_graph, self.offset
                )
            size_after = self.traffic_graph.get_size()

            agent_count = (size_after - size_before) // self.vertices_per_agent
            agents = create_agents(
                agent_count, self.traffic_graph, rng=self.rng, car_share=self.car_share
            )
            self.agents.extend(agents)
            self.batches += 1

            report = IngestReport(
                recentred=recentre,
                offset=self.offset,
                nodes=len(geo_data.node_locations),
                chunks=len(geo_data.chunks),
                features=sum(chunk.feature_count() for chunk in geo_data.chunks.values()),
                graph_size_before=size_before,
                graph_size_after=size_after,
                agents_spawned=len(agents),
            )
            logger.info(
                "Ingested batch",
                batch=self.batches,
                recentred=report.recentred,
                chunks=report.chunks,
                features=report.features,
                graph_size=size_after,
                agents=report.agents_spawned,
            )
            return report

    def ingest_text(self, text: Union[str, bytes]) -> IngestReport:
        return self.ingest(decode_json(text))

    def state(self) -> WorldState:
        """Consistent snapshot of the world's counts, taken under the lock."""
        with self._lock:
            return WorldState(
                offset=None if self.offset == UNSET_OFFSET else self.offset,
                batches=self.batches,
                chunks=len(self.chunks),
                nodes=len(self.node_locations),
                graph_vertices=self.traffic_graph.get_size(),
                graph_edges=self.traffic_graph.edge_count(),
                agents=len(self.agents),
            )

    def chunk_states(self) -> List[ChunkState]:
        """Feature counts of every loaded chunk, ordered by index."""
        with self._lock:
            return [
                ChunkState(
                    index=index,
                    nodes=len(chunk.nodes),
                    features={t: len(chunk.features(t)) for t in FeatureType},
                )
                for index, chunk in sorted(self.chunks.items())
            ]

    def route(self, from_osm_id: int, to_osm_id: int, agent_type: AgentType) -> Optional[Route]:
        """
        Cheapest route between two OSM nodes for an agent class.

        Returns:
            The route, or None if the nodes are not connected

        Raises:
            MissingDataError: if either node is not in the traffic graph
        """
        with self._lock:
            graph = self.traffic_graph
            start = graph.get_index(from_osm_id)
            if start is None:
                raise MissingDataError(f"node {from_osm_id} is not in the traffic graph")
            goal = graph.get_index(to_osm_id)
            if goal is None:
                raise MissingDataError(f"node {to_osm_id} is not in the traffic graph")

            found = graph.find_route(start, goal, agent_type)
            if found is None:
                logger.debug("No route", start=from_osm_id, goal=to_osm_id, agent=agent_type.value)
                return None

            cost, path = found
            return Route(
                cost=cost,
                osm_ids=[graph.get_osm_id(index) for index in path],
                locations=[graph.get_node_location(index) for index in path],
            )

    def buildings(self, index: ChunkIndex) -> List[BuildingSummary]:
        """
        Resolve the buildings of one chunk to a type and a number of levels.

        Buildings without a type tag take one from the land use area they
        lie in. Land use areas of every loaded chunk are considered, since
        an area is filed under a single chunk but may cover its neighbours.

        Raises:
            MissingDataError: if no data was ingested for the chunk
        """
        with self._lock:
            chunk = self.chunks.get(index)
            if chunk is None:
                raise MissingDataError(f"no data for chunk ({index.x}, {index.z})")

            partials = []
            for building_id, feature in chunk.building_features.items():
                base = [
                    tuple(self.node_locations[node_id].project(self.offset))
                    for node_id in feature.nodes
                    if node_id in self.node_locations
                ]
                # Closed ways repeat their first node
                if len(base) > 1 and base[0] == base[-1]:
                    base.pop()
                partials.append(
                    partial_building_from_feature(building_id, feature, counterclockwise(base))
                )

            land_use_features = {}
            for other in self.chunks.values():
                land_use_features.update(other.land_use_features)
            areas = building_land_use_areas(land_use_features, self.node_locations, self.offset)
            assign_land_use(partials, areas)

            summaries = []
            for partial in partials:
                building_type = infer_building_type(partial)
                summaries.append(
                    BuildingSummary(
                        id=partial.id,
                        building_type=building_type,
                        levels=choose_levels(partial, building_type, self.rng),
                        roof_shape=partial.roof_shape or RoofShape.FLAT,
                        base=partial.base,
                    )
                )
            return summaries

    def reset(self) -> None:
        """Forget everything, including the offset."""
        with self._lock:
            self._clear()
            self.offset = UNSET_OFFSET
            self.batches = 0
            logger.info("World reset")
