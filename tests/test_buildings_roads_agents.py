"""Tests for tag tables: road types, building types and agent classes."""

import numpy as np
import pytest

from py_cityviz.core.agents import (
    REFERENCE_SPEED,
    AgentType,
    agent_speed,
    create_agents,
    is_road_type_allowed,
    max_agent_speed,
)
from py_cityviz.core.buildings import (
    THRESHOLD_APARTMENT_BASE_SIZE,
    BuildingLandUseType,
    BuildingParseError,
    BuildingType,
    PartialBuilding,
    RoofShape,
    assign_land_use,
    building_land_use_areas,
    choose_levels,
    infer_building_type,
    level_range,
    partial_building_from_feature,
)
from py_cityviz.core.geography import Feature, GeoLocation, Offset, Vec2
from py_cityviz.core.road_types import OneWay, RoadType
from py_cityviz.core.traffic_graph import TrafficGraph


def square(size, origin=(0.0, 0.0)):
    x, y = origin
    return [(x, y), (x + size, y), (x + size, y + size), (x, y + size)]


def partial(base, building_type=None, levels=None, inside_area=BuildingLandUseType.UNKNOWN):
    return PartialBuilding(
        id=1,
        building_type=building_type,
        levels=levels,
        base=base,
        roof_shape=None,
        roof_levels=None,
        inside_area=inside_area,
    )


class TestRoadTypes:
    """Test parsing highway and oneway tags."""

    def test_known_values(self):
        """Test parsing highway tags."""
        assert RoadType.from_tag("motorway") is RoadType.MOTORWAY
        assert RoadType.from_tag("Tertiary_Link") is RoadType.TERTIARY_LINK

    def test_unknown_values(self):
        """Test that unknown highway tags are not covered."""
        assert RoadType.from_tag("cycleway") is RoadType.NOT_COVERED
        assert RoadType.from_tag("not_covered") is RoadType.NOT_COVERED
        assert RoadType.from_tag(None) is RoadType.NOT_COVERED

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("yes", OneWay.YES),
            ("true", OneWay.YES),
            ("1", OneWay.YES),
            ("-1", OneWay.REVERSED),
            ("reverse", OneWay.REVERSED),
            ("no", OneWay.NO),
            ("alternating", OneWay.NO),
            (None, OneWay.NO),
        ],
    )
    def test_oneway(self, value, expected):
        """Test parsing oneway tags."""
        assert OneWay.from_tag(value) is expected


class TestAgents:
    """Test per-class road permissions and speeds."""

    def test_permissions(self):
        """Test which road types each agent class may use."""
        assert is_road_type_allowed(RoadType.MOTORWAY, AgentType.CAR)
        assert not is_road_type_allowed(RoadType.MOTORWAY, AgentType.PEDESTRIAN)
        assert is_road_type_allowed(RoadType.FOOTWAY, AgentType.PEDESTRIAN)
        assert not is_road_type_allowed(RoadType.FOOTWAY, AgentType.CAR)
        assert is_road_type_allowed(RoadType.NOT_COVERED, AgentType.CAR)
        assert is_road_type_allowed(RoadType.NOT_COVERED, AgentType.PEDESTRIAN)

    def test_speeds(self):
        """Test agent speeds per road type."""
        assert agent_speed(1.0, AgentType.CAR, RoadType.MOTORWAY) == 24.0
        assert agent_speed(1.0, AgentType.CAR, RoadType.PRIMARY) == 20.0
        assert agent_speed(1.0, AgentType.CAR, RoadType.TERTIARY) == 12.0
        assert agent_speed(1.0, AgentType.CAR, RoadType.FOOTWAY) == 6.0
        assert agent_speed(1.0, AgentType.PEDESTRIAN, RoadType.MOTORWAY) == 1.0

    def test_max_speed(self):
        """Test the fastest speed of each agent class."""
        assert max_agent_speed(REFERENCE_SPEED, AgentType.CAR) == 24.0 * REFERENCE_SPEED
        assert max_agent_speed(REFERENCE_SPEED, AgentType.PEDESTRIAN) == REFERENCE_SPEED

    def test_create_agents(self):
        """Test spawning agents with routes."""
        graph = TrafficGraph()
        graph.add_connection(1, Vec2(0, 0), 2, Vec2(5, 0), OneWay.NO, RoadType.RESIDENTIAL)
        graph.add_connection(2, Vec2(5, 0), 3, Vec2(10, 0), OneWay.NO, RoadType.RESIDENTIAL)

        agents = create_agents(10, graph, rng=np.random.default_rng(3))

        assert len(agents) == 10
        for agent in agents:
            assert agent.path[0] == agent.start
            assert agent.path[-1] == agent.destination
            assert agent.start_location == graph.get_node_location(agent.start)

    def test_create_agents_skips_unroutable_pairs(self):
        """Test that agents are only created for connected pairs."""
        graph = TrafficGraph()
        graph.add_node(1, Vec2(0, 0))
        graph.add_node(2, Vec2(5, 0))

        agents = create_agents(20, graph, rng=np.random.default_rng(3))

        assert 0 < len(agents) < 20
        assert all(agent.start == agent.destination for agent in agents)

    def test_create_agents_on_empty_graph(self):
        """Test spawning agents without any vertices."""
        assert create_agents(5, TrafficGraph()) == []


class TestBuildingTags:
    """Test parsing building tags."""

    def test_parse(self):
        """Test parsing building type names."""
        assert BuildingType.parse("house") is BuildingType.HOUSE
        assert BuildingType.parse("castle") is BuildingType.OTHER
        with pytest.raises(BuildingParseError):
            BuildingType.parse("yes")

    def test_from_tag(self):
        """Test building types from tags."""
        assert BuildingType.from_tag("school") is BuildingType.SCHOOL
        assert BuildingType.from_tag("yes") is None
        assert BuildingType.from_tag(None) is None

    def test_every_type_has_a_level_range(self):
        """Test that the level table covers every building type."""
        assert len(BuildingType) == 37
        for building_type in BuildingType:
            low, high = level_range(building_type)
            assert 1 <= low <= high

    def test_roof_shape(self):
        """Test parsing roof shapes."""
        assert RoofShape.from_tag("gabled") is RoofShape.GABLED
        assert RoofShape.from_tag("onion") is RoofShape.FLAT
        assert RoofShape.from_tag(None) is RoofShape.FLAT

    def test_land_use(self):
        """Test parsing land use values."""
        assert BuildingLandUseType.from_tag("retail") is BuildingLandUseType.COMMERCIAL
        assert BuildingLandUseType.from_tag("residential") is BuildingLandUseType.RESIDENTIAL
        assert BuildingLandUseType.from_tag("forest") is BuildingLandUseType.UNKNOWN

    def test_partial_building_from_feature(self):
        """Test reading building attributes from tags."""
        feature = Feature(
            nodes=[1, 2, 3],
            tags={
                "building": "office",
                "building:levels": "7",
                "roof:shape": "hipped",
                "roof:levels": "1.5",
            },
        )
        building = partial_building_from_feature(5, feature, square(1.0))

        assert building.building_type is BuildingType.OFFICE
        assert building.levels == 7
        assert building.roof_shape is RoofShape.HIPPED
        assert building.roof_levels is None
        assert building.inside_area is BuildingLandUseType.NOT_NECESSARY

    def test_untyped_building(self):
        """Test inferring the type of an untyped building."""
        building = partial_building_from_feature(5, Feature(nodes=[], tags={"building": "yes"}), [])

        assert building.building_type is None
        assert building.roof_shape is None
        assert building.inside_area is BuildingLandUseType.UNKNOWN


class TestBuildingInference:
    """Test filling in what the tags do not say."""

    def test_tagged_type_wins(self):
        """Test that a tagged type is kept over land use."""
        building = partial(square(1.0), building_type=BuildingType.MUSEUM)
        assert infer_building_type(building) is BuildingType.MUSEUM

    def test_residential_size(self):
        """Test house and apartment inference by footprint."""
        small = partial(square(1.0), inside_area=BuildingLandUseType.RESIDENTIAL)
        side = (THRESHOLD_APARTMENT_BASE_SIZE * 2) ** 0.5
        large = partial(square(side), inside_area=BuildingLandUseType.RESIDENTIAL)

        assert infer_building_type(small) is BuildingType.HOUSE
        assert infer_building_type(large) is BuildingType.APARTMENTS

    @pytest.mark.parametrize(
        "inside_area,expected",
        [
            (BuildingLandUseType.COMMERCIAL, BuildingType.COMMERCIAL),
            (BuildingLandUseType.INDUSTRIAL, BuildingType.INDUSTRIAL),
            (BuildingLandUseType.EDUCATION, BuildingType.SCHOOL),
            (BuildingLandUseType.UNKNOWN, BuildingType.OTHER),
        ],
    )
    def test_land_use_types(self, inside_area, expected):
        """Test the building type implied by each land use."""
        assert infer_building_type(partial(square(1.0), inside_area=inside_area)) is expected

    def test_explicit_levels(self, rng):
        """Test that tagged levels are used as is."""
        assert choose_levels(partial(square(100.0), levels=12), BuildingType.HOUSE, rng) == 12

    def test_small_buildings_have_one_level(self, rng):
        """Test the level count of tiny footprints."""
        assert choose_levels(partial(square(1.0)), BuildingType.APARTMENTS, rng) == 1

    def test_levels_within_range(self, rng):
        """Test that random levels stay in the type's range."""
        for _ in range(20):
            levels = choose_levels(partial(square(100.0)), BuildingType.APARTMENTS, rng)
            assert 3 <= levels <= 6

    def test_non_residential_levels_are_capped(self, rng):
        """Test the footprint cap on non-residential levels."""
        # 6 * 6 = 36 area, cap is floor(36 / 25) + 1 = 2
        for _ in range(20):
            assert choose_levels(partial(square(6.0)), BuildingType.OFFICE, rng) <= 2

    def test_assign_land_use(self):
        """Test matching buildings to the land use they lie in."""
        offset = Offset(*GeoLocation(5.0, 51.0).project_no_scale())
        corners = [(5.0, 51.0), (5.01, 51.0), (5.01, 50.99), (5.0, 50.99)]
        node_locations = {i: GeoLocation(lon, lat) for i, (lon, lat) in enumerate(corners)}
        land_use = {
            100: Feature(nodes=[0, 1, 2, 3, 0], tags={"landuse": "industrial"}),
            101: Feature(nodes=[0, 1, 2], tags={"landuse": "meadow"}),
        }
        areas = building_land_use_areas(land_use, node_locations, offset)
        assert [land_use_type for _, land_use_type in areas] == [BuildingLandUseType.INDUSTRIAL]

        inside = GeoLocation(5.005, 50.995).project(offset)
        outside = GeoLocation(5.02, 50.995).project(offset)
        buildings = [
            partial([tuple(inside)]),
            partial([tuple(outside)]),
            partial([tuple(inside)], building_type=BuildingType.HOUSE,
                    inside_area=BuildingLandUseType.NOT_NECESSARY),
        ]
        assign_land_use(buildings, areas)

        assert buildings[0].inside_area is BuildingLandUseType.INDUSTRIAL
        assert buildings[1].inside_area is BuildingLandUseType.UNKNOWN
        assert buildings[2].inside_area is BuildingLandUseType.NOT_NECESSARY
