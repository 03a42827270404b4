"""FastAPI main application."""

import logging
from typing import Dict, List, Optional

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..config import settings
from ..core.agents import AgentType
from ..core.errors import AppError, DataSyntaxError, InputSyntaxError, IoError, MissingDataError
from ..core.geography import ChunkIndex
from ..core.loading import load_osm_json
from ..core.query import InputQueryType, parse_data_query
from ..core.world import IngestReport, World

# Configure logging
logging.basicConfig(format="%(message)s", level=settings.log_level.upper())

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.JSONRenderer()
        if settings.log_format == "json"
        else structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

# Initialize FastAPI app
app = FastAPI(
    title="City Visualization API",
    description="Ingest OpenStreetMap data into chunks and route agents through its roads",
    version="0.1.0",
    debug=settings.debug,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

world = World(
    max_recenter_distance=settings.max_recenter_distance,
    vertices_per_agent=settings.vertices_per_agent,
    car_share=settings.car_share,
)

ERROR_STATUS_CODES = {
    InputSyntaxError: 400,
    DataSyntaxError: 422,
    MissingDataError: 404,
    IoError: 502,
}


# Request/Response models
class QueryRequest(BaseModel):
    """Request to load data by city name, Overpass QL or file path."""

    query_type: InputQueryType = Field(..., description="How to interpret the value")
    value: str = Field(..., description="City name, Overpass QL query or file path")


class RouteRequest(BaseModel):
    """Request a route between two OSM nodes."""

    from_id: int = Field(..., ge=0, description="OSM id of the start node")
    to_id: int = Field(..., ge=0, description="OSM id of the destination node")
    agent_type: AgentType = Field(AgentType.CAR, description="Agent class to route for")


class IngestResponse(BaseModel):
    recentred: bool
    offset: List[float]
    nodes: int
    chunks: int
    features: int
    graph_size_before: int
    graph_size_after: int
    agents_spawned: int


class StateResponse(BaseModel):
    offset: Optional[List[float]]
    batches: int
    chunks: int
    nodes: int
    graph_vertices: int
    graph_edges: int
    agents: int


class ChunkSummary(BaseModel):
    x: int
    z: int
    nodes: int
    features: Dict[str, int]


class RouteResponse(BaseModel):
    cost: float
    path: List[int]
    locations: List[List[float]]


class BuildingResponse(BaseModel):
    id: int
    building_type: str
    levels: int
    roof_shape: str
    base: List[List[float]]


def _ingest_response(report: IngestReport) -> IngestResponse:
    return IngestResponse(
        recentred=report.recentred,
        offset=[report.offset.x, report.offset.y],
        nodes=report.nodes,
        chunks=report.chunks,
        features=report.features,
        graph_size_before=report.graph_size_before,
        graph_size_after=report.graph_size_after,
        agents_spawned=report.agents_spawned,
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, error: AppError):
    status_code = ERROR_STATUS_CODES.get(type(error), 500)
    logger.warning(
        "Request failed",
        path=request.url.path,
        kind=error.kind,
        status=status_code,
        error=str(error),
    )
    content = {"error": error.kind, "message": str(error)}
    content.update(error.context())
    return JSONResponse(status_code=status_code, content=content)


# Event handlers
@app.on_event("startup")
async def startup_event():
    logger.info("Starting City Visualization API")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Shutting down City Visualization API")


# API endpoints
@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "City Visualization API", "version": "0.1.0", "status": "running"}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


@app.post("/ingest", response_model=IngestResponse)
async def ingest(request: Request):
    """
    Ingest an OSM JSON document sent as the request body.

    A batch far away from the current data recentres the world and
    replaces everything ingested before.
    """
    body = await request.body()
    logger.info("Ingest requested", size=len(body))
    report = await run_in_threadpool(world.ingest_text, body)
    return _ingest_response(report)


@app.post("/query", response_model=IngestResponse)
def query(request: QueryRequest):
    """Load data by city name, Overpass QL query or file path and ingest it."""
    logger.info("Query requested", query_type=request.query_type.value)
    data_query = parse_data_query(request.query_type, request.value)
    report = world.ingest(load_osm_json(data_query, settings))
    return _ingest_response(report)


@app.get("/state", response_model=StateResponse)
def get_state():
    """Summary of what the world currently holds."""
    state = world.state()
    return StateResponse(
        offset=None if state.offset is None else [state.offset.x, state.offset.y],
        batches=state.batches,
        chunks=state.chunks,
        nodes=state.nodes,
        graph_vertices=state.graph_vertices,
        graph_edges=state.graph_edges,
        agents=state.agents,
    )


@app.get("/chunks", response_model=List[ChunkSummary])
def list_chunks():
    """Feature counts of every loaded chunk."""
    return [
        ChunkSummary(
            x=chunk.index.x,
            z=chunk.index.z,
            nodes=chunk.nodes,
            features={t.value: count for t, count in chunk.features.items()},
        )
        for chunk in world.chunk_states()
    ]


@app.get("/chunks/{x}/{z}/buildings", response_model=List[BuildingResponse])
def chunk_buildings(x: int, z: int):
    """Buildings of one chunk with their resolved type and height."""
    return [
        BuildingResponse(
            id=building.id,
            building_type=building.building_type.value,
            levels=building.levels,
            roof_shape=building.roof_shape.value,
            base=[list(point) for point in building.base],
        )
        for building in world.buildings(ChunkIndex(x, z))
    ]


@app.post("/route", response_model=RouteResponse)
def route(request: RouteRequest):
    """Cheapest path between two OSM nodes for an agent class."""
    found = world.route(request.from_id, request.to_id, request.agent_type)
    if found is None:
        raise HTTPException(status_code=404, detail="no route")
    return RouteResponse(
        cost=found.cost,
        path=found.osm_ids,
        locations=[[location.x, location.y] for location in found.locations],
    )


@app.post("/reset")
def reset():
    """Discard all ingested data."""
    world.reset()
    return {"status": "reset"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
