"""
Core city data functionality.
"""

from .errors import AppError, DataFormat, DataSyntaxError, InputSyntaxError, IoError, MissingDataError
from .geography import ChunkIndex, GeoData, GeoLocation, Offset, Vec2, find_bounds, project
from .osm_parser import convert_osm_json, parse_osm_json
from .query import InputQueryType, parse_data_query
from .loading import load_geo_data
from .agents import AgentType
from .traffic_graph import TrafficGraph, update_traffic_graph
from .simplification import simplify_polygon
from .world import World

__all__ = ['AppError', 'DataFormat', 'DataSyntaxError', 'InputSyntaxError', 'IoError',
           'MissingDataError', 'ChunkIndex', 'GeoData', 'GeoLocation', 'Offset', 'Vec2',
           'find_bounds', 'project', 'convert_osm_json', 'parse_osm_json',
           'InputQueryType', 'parse_data_query', 'load_geo_data', 'AgentType',
           'TrafficGraph', 'update_traffic_graph', 'simplify_polygon', 'World']
