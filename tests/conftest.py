"""Shared fixtures for building OSM JSON documents."""

import json

import numpy as np
import pytest


def node(node_id, lon, lat, tags=None):
    element = {"type": "node", "id": node_id, "lon": lon, "lat": lat}
    if tags is not None:
        element["tags"] = tags
    return element


def way(way_id, nodes, tags=None):
    element = {"type": "way", "id": way_id, "nodes": nodes}
    if tags is not None:
        element["tags"] = tags
    return element


def document(*elements):
    return {"version": 0.6, "elements": list(elements)}


def road_document(lon, lat, first_id=1, count=4, step=0.0001, highway="residential", way_id=1000):
    """A straight east-west road of ``count`` nodes starting at (lon, lat)."""
    node_ids = list(range(first_id, first_id + count))
    nodes = [node(node_id, lon + i * step, lat) for i, node_id in enumerate(node_ids)]
    return document(*nodes, way(way_id, node_ids, {"highway": highway}))


@pytest.fixture
def rng():
    return np.random.default_rng(42)


@pytest.fixture
def eindhoven_roads():
    """Four nodes on one residential road in Eindhoven."""
    return road_document(5.4697, 51.4416)


@pytest.fixture
def eindhoven_roads_json(eindhoven_roads):
    return json.dumps(eindhoven_roads)
