#!/usr/bin/env python3
"""
GeoJSON Tile Server

A FastAPI server that loads GeoJSON sources at runtime and serves them as
vector tiles, either sliced into a tile pyramid or clustered.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

import aiofiles
import uvicorn
from fastapi import Body, FastAPI, HTTPException, Query, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST

from geojson_tile_index import GeoJSONWorkerSource
from geojson_tile_index.indexing.projection import tile_to_bbox
from geojson_tile_index.retrieval.tile_retriever import TileAddress
from geojson_tile_index.utils import (
    Config,
    ConfigError,
    FetchError,
    IndexBuildError,
    InputError,
    configure_logging,
    get_logger,
)

# Configuration
config = Config.from_env()
configure_logging(config.log_level, config.log_format)

logger = get_logger(component="tile-server")

PORT = int(os.getenv("PORT", "8000"))
HOST = os.getenv("HOST", "0.0.0.0")
SOURCES_MANIFEST = os.getenv("SOURCES_MANIFEST")

TILE_FORMATS = ["mvt", "pbf", "geojson"]

# Create FastAPI app
app = FastAPI(
    title="GeoJSON Tile Server",
    description="Runtime GeoJSON sources served as vector tiles",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

worker = GeoJSONWorkerSource(config=config)


@app.on_event("startup")
async def startup_event():
    """Initialize the tile server."""
    logger.info("Starting GeoJSON Tile Server", port=PORT, environment=config.environment)

    if SOURCES_MANIFEST:
        await load_manifest(Path(SOURCES_MANIFEST))

    logger.info("Tile server initialized successfully", sources=len(worker.registry))


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    logger.info("Shutting down GeoJSON Tile Server")
    worker.close()


async def load_manifest(manifest_file: Path) -> int:
    """
    Load the sources listed in a JSON manifest.

    The manifest is a list of source parameter objects. A source that fails
    to load is logged and skipped so the remaining sources still come up.

    Returns:
        Number of sources loaded
    """
    if not manifest_file.exists():
        logger.warning("Sources manifest not found", path=str(manifest_file))
        return 0

    async with aiofiles.open(manifest_file, 'r') as f:
        content = await f.read()

    try:
        entries = json.loads(content)
    except ValueError as e:
        logger.error("Sources manifest is not valid JSON", path=str(manifest_file), error=str(e))
        return 0

    loaded = 0
    for entry in entries if isinstance(entries, list) else []:
        try:
            await worker.load_data(entry)
            loaded += 1
        except (InputError, ConfigError, FetchError, IndexBuildError) as e:
            source = entry.get("source") if isinstance(entry, dict) else None
            logger.error("Failed to load manifest source", source=source, error=str(e))

    logger.info("Loaded sources manifest", path=str(manifest_file), sources_loaded=loaded)
    return loaded


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "geojson-tile-server",
        "version": "1.0.0",
        "sources_loaded": len(worker.registry)
    }


@app.get("/")
async def root():
    """Root endpoint with server information."""
    return {
        "service": "GeoJSON Tile Server",
        "version": "1.0.0",
        "endpoints": {
            "health": "/health",
            "sources": "/sources",
            "source": "/sources/{source}",
            "tiles": "/tiles/{source}/{z}/{x}/{y}.{format}",
            "bounds": "/bounds/{z}/{x}/{y}",
            "metrics": "/metrics",
            "docs": "/docs"
        },
        "supported_formats": TILE_FORMATS
    }


@app.get("/sources")
async def list_sources():
    """List loaded sources."""
    return worker.stats()


@app.put("/sources/{source}")
async def load_source(source: str, params: Dict[str, Any] = Body(...)):
    """
    Load (or reload) a source.

    The body carries ``url`` or ``data`` plus optional ``cluster``,
    ``maxZoom``, ``geojsonVtOptions`` and ``superclusterOptions``.
    """
    try:
        result = await worker.load_data({**params, "source": source})
    except (InputError, ConfigError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except FetchError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except IndexBuildError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return {
        "source": result.source,
        "mode": result.mode,
        "max_zoom": result.index.max_zoom,
        "generation": result.generation,
        "installed": result.installed
    }


@app.delete("/sources/{source}")
async def remove_source(source: str):
    """Remove a source."""
    if not worker.remove_source(source):
        raise HTTPException(status_code=404, detail="Source not found")
    return {"status": "success", "source": source}


@app.get("/tiles/{source}/{z}/{x}/{y}.{format}")
async def get_tile(
    source: str,
    z: int,
    x: int,
    y: int,
    format: str,
    max_zoom: Optional[int] = Query(None, alias="maxZoom", description="Clamp requests to this zoom")
):
    """
    Serve a tile of a loaded source.

    Args:
        source: Source id
        z: Zoom level
        x: Tile X coordinate
        y: Tile Y coordinate
        format: Tile format (mvt, pbf, geojson)
    """
    if z < 0 or x < 0 or y < 0:
        raise HTTPException(status_code=400, detail="Invalid tile coordinates")

    if format not in TILE_FORMATS:
        raise HTTPException(status_code=400, detail="Unsupported format")

    if source not in worker.registry:
        raise HTTPException(status_code=404, detail="Source not found")

    headers = {"Cache-Control": "no-cache"}

    if format == "geojson":
        wrapper = worker.get_tile(source, TileAddress(z, x, y), max_zoom)
        if wrapper is None:
            return Response(status_code=204, headers=headers)
        body = json.dumps(wrapper.to_geojson(), allow_nan=False)
        media_type = "application/geo+json"
    else:
        wrapper = worker.load_vector_data({
            "source": source,
            "coord": {"z": z, "x": x, "y": y},
            "maxZoom": max_zoom
        })
        if wrapper is None:
            return Response(status_code=204, headers=headers)
        body = wrapper.raw_data
        media_type = "application/x-protobuf"

    logger.info("Serving tile", source=source, z=z, x=x, y=y, format=format, features=len(wrapper))
    return Response(content=body, media_type=media_type, headers=headers)


@app.get("/bounds/{z}/{x}/{y}")
async def get_tile_bounds(z: int, x: int, y: int):
    """Get geographic bounds for a tile."""
    west, south, east, north = tile_to_bbox(z, x, y)

    return {
        "z": z,
        "x": x,
        "y": y,
        "bounds": {"west": west, "south": south, "east": east, "north": north},
        "bbox": [west, south, east, north]
    }


@app.get("/metrics")
async def metrics():
    """Prometheus metrics."""
    return Response(content=worker.metrics.export(), media_type=CONTENT_TYPE_LATEST)


if __name__ == "__main__":
    uvicorn.run(
        "tile-server:app",
        host=HOST,
        port=PORT,
        reload=False,
        log_level="info",
        access_log=True
    )
