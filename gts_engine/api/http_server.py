"""
HTTP server for the GTS engine.

A thin FastAPI layer over GtsOps: each route calls one operation and
returns its result dict as JSON.

Invariants:
    - Routes never raise for engine errors; the result's `error_code`
      picks the status (400 parse, 404 not found, 409 mismatch or
      incompatible, 422 validation)
    - One GtsOps (and so one StoreHandle) is shared by all requests

How to change safely:
    - Add a facade operation first, then a route that only forwards to it
    - Version the API (/v2) for breaking response changes

Usage:
    uvicorn --factory gts_engine.api.http_server:create_app --port 8000
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import APIRouter, Body, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .._version import __version__
from ..config import Settings
from ..ops import GtsOps

logger = logging.getLogger(__name__)

STATUS_BY_CODE = {
    "PARSE_ERROR": 400,
    "INVALID_SCOPE": 400,
    "NOT_FOUND": 404,
    "PATH_NOT_FOUND": 404,
    "MAJOR_VERSION_MISMATCH": 409,
    "INCOMPATIBLE_SCHEMAS": 409,
    "VALIDATION_ERROR": 422,
    "CONFIG_ERROR": 500,
}

router = APIRouter(tags=["GTS"])


class AddSchemaRequest(BaseModel):
    """Register a schema under an explicit type id."""

    type_id: str = Field(..., description="Schema identifier, ending in '~'")
    schema_: Dict[str, Any] = Field(..., alias="schema", description="JSON Schema document")


class ReloadRequest(BaseModel):
    """Rebuild the store, optionally from new roots."""

    paths: Optional[List[str]] = None


def get_ops(request: Request) -> GtsOps:
    return request.app.state.ops


def respond(result: Dict[str, Any]) -> JSONResponse:
    """JSON response whose status follows the result's error code."""
    status = STATUS_BY_CODE.get(result.get("error_code", ""), 200)
    return JSONResponse(content=result, status_code=status)


@router.get("/id/validate")
def validate_id(request: Request, gts_id: str = Query(...)) -> JSONResponse:
    return respond(get_ops(request).validate_id(gts_id))


@router.get("/id/parse")
def parse_id(request: Request, gts_id: str = Query(...)) -> JSONResponse:
    return respond(get_ops(request).parse_id(gts_id))


@router.get("/id/match")
def match_id(request: Request, pattern: str = Query(...), candidate: str = Query(...)) -> JSONResponse:
    return respond(get_ops(request).match_id_pattern(pattern, candidate))


@router.get("/id/uuid")
def id_uuid(request: Request, gts_id: str = Query(...), scope: str = Query("minor")) -> JSONResponse:
    return respond(get_ops(request).uuid(gts_id, scope))


@router.post("/id/extract")
def extract_id(request: Request, document: Any = Body(...)) -> JSONResponse:
    return respond(get_ops(request).extract_id(document))


@router.get("/entities")
def list_entities(request: Request, limit: Optional[int] = Query(None)) -> JSONResponse:
    return respond(get_ops(request).list(limit))


@router.get("/entities/{gts_id}")
def get_entity(request: Request, gts_id: str) -> JSONResponse:
    return respond(get_ops(request).get_entity(gts_id))


@router.post("/entities")
def add_entity(request: Request, document: Any = Body(...), validate: bool = Query(False)) -> JSONResponse:
    return respond(get_ops(request).add_entity(document, validate))


@router.post("/entities/bulk")
def add_entities(request: Request, documents: List[Any] = Body(...), validate: bool = Query(False)) -> JSONResponse:
    return respond(get_ops(request).add_entities(documents, validate))


@router.post("/schemas")
def add_schema(request: Request, body: AddSchemaRequest) -> JSONResponse:
    return respond(get_ops(request).add_schema(body.type_id, body.schema_))


@router.get("/validate-instance")
def validate_instance(request: Request, gts_id: str = Query(...)) -> JSONResponse:
    return respond(get_ops(request).validate_instance(gts_id))


@router.get("/validate-schema")
def validate_schema(request: Request, gts_id: str = Query(...)) -> JSONResponse:
    return respond(get_ops(request).validate_schema(gts_id))


@router.get("/validate-entity")
def validate_entity(request: Request, gts_id: str = Query(...)) -> JSONResponse:
    return respond(get_ops(request).validate_entity(gts_id))


@router.get("/resolve-relationships")
def resolve_relationships(request: Request, gts_id: str = Query(...)) -> JSONResponse:
    return respond(get_ops(request).resolve_relationships(gts_id))


@router.get("/schema-graph")
def schema_graph(request: Request, gts_id: str = Query(...)) -> JSONResponse:
    return respond(get_ops(request).schema_graph(gts_id))


@router.get("/compatibility")
def compatibility(
    request: Request,
    old_schema_id: str = Query(...),
    new_schema_id: str = Query(...),
) -> JSONResponse:
    return respond(get_ops(request).compatibility(old_schema_id, new_schema_id))


@router.get("/cast")
def cast(request: Request, from_id: str = Query(...), to_schema_id: str = Query(...)) -> JSONResponse:
    return respond(get_ops(request).cast(from_id, to_schema_id))


@router.get("/query")
def query(request: Request, expr: str = Query(...), limit: Optional[int] = Query(None)) -> JSONResponse:
    return respond(get_ops(request).query(expr, limit))


@router.get("/attr")
def attr(request: Request, gts_with_path: str = Query(...)) -> JSONResponse:
    return respond(get_ops(request).attr(gts_with_path))


@router.post("/reload")
def reload(request: Request, body: Optional[ReloadRequest] = None) -> JSONResponse:
    paths = body.paths if body is not None else None
    return respond(get_ops(request).reload(paths))


def create_app(ops: Optional[GtsOps] = None, settings: Optional[Settings] = None) -> FastAPI:
    """Create the GTS FastAPI app.

    Args:
        ops: Shared operations facade (built from settings if omitted)
        settings: Process settings

    Returns:
        FastAPI application
    """
    settings = settings or Settings()
    if ops is None:
        ops = GtsOps.from_settings(settings)

    app = FastAPI(
        title="GTS Engine",
        description="Identifier validation, schema compatibility, casting and queries over GTS entities.",
        version=__version__,
    )
    app.state.ops = ops
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router, prefix="/v1")

    @app.get("/health")
    def health() -> Dict[str, Any]:
        return {"status": "healthy", "service": "gts-engine", "entities": len(ops.store)}

    logger.info(f"HTTP app created with {len(ops.store)} entities")
    return app


def run_http_server(ops: GtsOps, settings: Settings) -> None:
    """Serve the app with uvicorn until interrupted."""
    app = create_app(ops, settings)
    logger.info(f"Serving GTS HTTP API on {settings.host}:{settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
