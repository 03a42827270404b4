"""Tests for query parsing and data loading."""

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import requests

from conftest import document, node
from py_cityviz.config import Settings
from py_cityviz.core.errors import DataFormat, DataSyntaxError, InputSyntaxError, IoError
from py_cityviz.core.geography import ChunkIndex
from py_cityviz.core.loading import load_document, load_geo_data, load_osm_json
from py_cityviz.core.query import FileQuery, InputQueryType, OverpassQuery, parse_data_query


@pytest.fixture
def test_settings():
    return Settings(overpass_url="http://overpass.test/api/interpreter", request_timeout_seconds=5)


def mock_response(status_code=200, text="", reason="OK"):
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.text = text
    response.content = text.encode()
    response.reason = reason
    return response


class TestParseDataQuery:
    """Test turning user input into queries."""

    def test_city(self):
        """Test building a city query."""
        query = parse_data_query(InputQueryType.CITY, "Eindhoven")

        assert isinstance(query, OverpassQuery)
        assert query.value.startswith("[out:json];")
        assert 'area[name="Eindhoven"]->.searchArea;' in query.value
        assert 'way["waterway"~"river|stream|canal|ditch"](area.searchArea);' in query.value
        assert query.value.endswith("out body;")

    def test_city_with_quotes(self):
        """Test that quotes in city names are rejected."""
        with pytest.raises(InputSyntaxError, match="city query may not contain quotes"):
            parse_data_query(InputQueryType.CITY, 'Eind"hoven')

    def test_overpass_passthrough(self):
        """Test that Overpass QL is used as is."""
        assert parse_data_query(InputQueryType.OVERPASS, "node(1);out;") == OverpassQuery(
            "node(1);out;"
        )

    def test_file_formats(self):
        """Test detecting the file format by extension."""
        assert parse_data_query(InputQueryType.FILE, "data/city.json") == FileQuery(
            DataFormat.OSM_JSON, Path("data/city.json")
        )
        assert parse_data_query(InputQueryType.FILE, "city.geojson").format is DataFormat.GEOJSON

    def test_file_extension_errors(self):
        """Test unsupported and missing extensions."""
        with pytest.raises(InputSyntaxError, match="unsupported file extension"):
            parse_data_query(InputQueryType.FILE, "city.xml")
        with pytest.raises(InputSyntaxError, match="file without file extension"):
            parse_data_query(InputQueryType.FILE, "city")


class TestLoadFile:
    """Test loading from the file system."""

    def test_load_file(self, tmp_path):
        """Test loading a document from disk."""
        path = tmp_path / "city.json"
        path.write_text(json.dumps(document(node(1, 0, 0, {"shop": "bakery"}))))

        geo_data = load_geo_data(FileQuery(DataFormat.OSM_JSON, path))

        assert 1 in geo_data.chunks[ChunkIndex(4000, 4000)].nodes

    def test_missing_file(self, tmp_path):
        """Test reading a file that does not exist."""
        path = tmp_path / "missing.json"
        with pytest.raises(IoError) as excinfo:
            load_document(FileQuery(DataFormat.OSM_JSON, path))

        assert excinfo.value.url == f"file://{path.absolute()}"
        assert str(excinfo.value).endswith(f"from url file://{path.absolute()}")

    def test_geojson_not_supported(self, tmp_path):
        """Test that GeoJSON cannot be loaded."""
        with pytest.raises(InputSyntaxError, match="geojson data is not supported"):
            load_osm_json(FileQuery(DataFormat.GEOJSON, tmp_path / "missing.geojson"))

    def test_malformed_file(self, tmp_path):
        """Test a file with invalid JSON."""
        path = tmp_path / "broken.json"
        path.write_text('{"elements": [')

        with pytest.raises(DataSyntaxError):
            load_geo_data(FileQuery(DataFormat.OSM_JSON, path))


class TestLoadOverpass:
    """Test fetching from the Overpass API."""

    @patch("py_cityviz.core.loading.requests.post")
    def test_fetch(self, mock_post, test_settings):
        """Test posting a query to Overpass."""
        mock_post.return_value = mock_response(text=json.dumps(document(node(1, 0, 0))))

        doc = load_osm_json(OverpassQuery("node(1);out;"), test_settings)

        assert doc["elements"][0]["id"] == 1
        mock_post.assert_called_once_with(
            "http://overpass.test/api/interpreter",
            data={"data": "node(1);out;"},
            timeout=5,
        )

    @patch("py_cityviz.core.loading.requests.post")
    def test_error_status(self, mock_post, test_settings):
        """Test an error status from Overpass."""
        mock_post.return_value = mock_response(status_code=429, reason="Too Many Requests")

        with pytest.raises(IoError) as excinfo:
            load_document(OverpassQuery("node(1);out;"), test_settings)

        error = excinfo.value
        assert error.status == 429
        assert error.url == "http://overpass.test/api/interpreter"
        assert str(error) == (
            "status 429 Too Many Requests from url http://overpass.test/api/interpreter"
        )

    @patch("py_cityviz.core.loading.requests.post")
    def test_transport_error(self, mock_post, test_settings):
        """Test a connection failure."""
        mock_post.side_effect = requests.ConnectionError("connection refused")

        with pytest.raises(IoError) as excinfo:
            load_document(OverpassQuery("node(1);out;"), test_settings)

        assert excinfo.value.status is None
        assert "connection refused" in str(excinfo.value)
