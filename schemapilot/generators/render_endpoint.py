"""CRUD endpoint rendering (FastAPI router over the entity's SQLAlchemy model)."""
from typing import Dict, Iterable, List, Optional

from schemapilot.core.errors import ValidationError
from schemapilot.generators.render_schema import type_names
from schemapilot.generators.types import (
    CANONICAL_METHOD_ORDER,
    ArtifactKind,
    GeneratedArtifact,
    HttpMethod,
    artifact_path,
)
from schemapilot.generators.utils import EntityIdentifiers, derive_identifiers, to_kebab_case


# Aliases the reasoning engine tends to use for the four operations
_METHOD_ALIASES = {
    "get": HttpMethod.GET,
    "read": HttpMethod.GET,
    "list": HttpMethod.GET,
    "post": HttpMethod.POST,
    "create": HttpMethod.POST,
    "put": HttpMethod.PUT,
    "patch": HttpMethod.PUT,
    "update": HttpMethod.PUT,
    "delete": HttpMethod.DELETE,
}


def normalize_methods(methods: Iterable) -> List[HttpMethod]:
    """Turn a requested method set into canonical handler order, rejecting unknown or empty sets."""
    requested = set()
    for raw in methods:
        method = raw if isinstance(raw, HttpMethod) else _METHOD_ALIASES.get(str(raw).strip().lower())
        if method is None:
            raise ValidationError(f"Unsupported method '{raw}'. Expected GET, POST, PUT or DELETE")
        requested.add(method)
    if not requested:
        raise ValidationError("At least one method is required to generate an endpoint")
    return [m for m in CANONICAL_METHOD_ORDER if m in requested]


def route_path(entity_name: str, route: Optional[str] = None) -> str:
    """URL path the endpoint is mounted at."""
    cleaned = (route or "").strip().strip("/")
    if cleaned.startswith("api/"):
        cleaned = cleaned[len("api/"):]
    segment = to_kebab_case(cleaned) or derive_identifiers(entity_name).route_segment
    return f"/api/{segment}"


def _render_read(ids: EntityIdentifiers, names: Dict[str, str]) -> List[str]:
    table, model = ids.canonical_name, names["model"]
    return [
        '@router.get("")',
        f"def read_{table}(id: Optional[str] = Query(None), db: Session = Depends(get_db)):",
        "    try:",
        "        if id is not None:",
        "            if not (id.isascii() and id.isdigit()):",
        '                return _failure(400, "validation", "id must be an integer")',
        f"            row = db.get({model}, int(id))",
        "            if row is None:",
        f'                return _failure(404, "not_found", f"{table} {{id}} not found")',
        "            return _serialize(row)",
        f"        rows = db.query({model}).order_by({model}.id).all()",
        "        return [_serialize(row) for row in rows]",
        "    except SQLAlchemyError:",
        f'        log.exception("Failed to fetch {table}")',
        f'        return _failure(500, "internal", "Failed to fetch {table}")',
    ]


def _render_create(ids: EntityIdentifiers, names: Dict[str, str]) -> List[str]:
    table, model = ids.canonical_name, names["model"]
    return [
        '@router.post("")',
        f"async def create_{table}(request: Request, db: Session = Depends(get_db)):",
        "    try:",
        f"        data = {names['insert']}.model_validate(await request.json())",
        "    except ValueError as e:",
        '        return _failure(400, "validation", str(e))',
        "    try:",
        f"        row = {model}(**data.model_dump())",
        "        db.add(row)",
        "        db.commit()",
        "        db.refresh(row)",
        "    except IntegrityError as e:",
        "        db.rollback()",
        '        return _failure(400, "validation", str(e.orig))',
        "    except SQLAlchemyError:",
        "        db.rollback()",
        f'        log.exception("Failed to create {table}")',
        f'        return _failure(500, "internal", "Failed to create {table}")',
        "    return JSONResponse(status_code=201, content=_serialize(row))",
    ]


def _render_update(ids: EntityIdentifiers, names: Dict[str, str]) -> List[str]:
    table, model = ids.canonical_name, names["model"]
    return [
        '@router.put("")',
        f"async def update_{table}(request: Request, id: Optional[str] = Query(None), db: Session = Depends(get_db)):",
        "    if id is None:",
        '        return _failure(400, "validation", "id is required")',
        "    if not (id.isascii() and id.isdigit()):",
        '        return _failure(400, "validation", "id must be an integer")',
        "    try:",
        f"        data = {names['update']}.model_validate(await request.json())",
        "    except ValueError as e:",
        '        return _failure(400, "validation", str(e))',
        "    try:",
        f"        row = db.get({model}, int(id))",
        "        if row is None:",
        f'            return _failure(404, "not_found", f"{table} {{id}} not found")',
        "        for key, value in data.model_dump(exclude_unset=True).items():",
        "            setattr(row, key, value)",
        "        db.commit()",
        "        db.refresh(row)",
        "    except IntegrityError as e:",
        "        db.rollback()",
        '        return _failure(400, "validation", str(e.orig))',
        "    except SQLAlchemyError:",
        "        db.rollback()",
        f'        log.exception("Failed to update {table}")',
        f'        return _failure(500, "internal", "Failed to update {table}")',
        "    return _serialize(row)",
    ]


def _render_delete(ids: EntityIdentifiers, names: Dict[str, str]) -> List[str]:
    table, model = ids.canonical_name, names["model"]
    return [
        '@router.delete("")',
        f"def delete_{table}(id: Optional[str] = Query(None), db: Session = Depends(get_db)):",
        "    if id is None:",
        '        return _failure(400, "validation", "id is required")',
        "    if not (id.isascii() and id.isdigit()):",
        '        return _failure(400, "validation", "id must be an integer")',
        "    try:",
        f"        row = db.get({model}, int(id))",
        "        if row is None:",
        f'            return _failure(404, "not_found", f"{table} {{id}} not found")',
        "        db.delete(row)",
        "        db.commit()",
        "    except SQLAlchemyError:",
        "        db.rollback()",
        f'        log.exception("Failed to delete {table}")',
        f'        return _failure(500, "internal", "Failed to delete {table}")',
        '    return {"success": True, "id": int(id)}',
    ]


_HANDLERS = {
    HttpMethod.GET: _render_read,
    HttpMethod.POST: _render_create,
    HttpMethod.PUT: _render_update,
    HttpMethod.DELETE: _render_delete,
}


def render_endpoint(entity_name: str, methods: Iterable, route: Optional[str] = None) -> str:
    """Generate a FastAPI router with one handler per requested method."""
    ids = derive_identifiers(entity_name)
    names = type_names(entity_name)
    selected = normalize_methods(methods)

    lines = [
        f'"""CRUD endpoint for {ids.canonical_name} (generated by schemapilot)."""',
        "import logging",
        "from typing import Optional",
        "",
        "from fastapi import APIRouter, Depends, Query, Request",
        "from fastapi.responses import JSONResponse",
        "from sqlalchemy.exc import IntegrityError, SQLAlchemyError",
        "from sqlalchemy.orm import Session",
        "",
        "from app.db.session import get_db",
        f"from app.models.{ids.canonical_name} import {names['model']}",
        f"from app.schemas.{ids.canonical_name} import {names['insert']}, {names['select']}, {names['update']}",
        "",
        "log = logging.getLogger(__name__)",
        "",
        f'router = APIRouter(prefix="{route_path(entity_name, route)}", tags=["{ids.canonical_name}"])',
        "",
        "",
        "def _failure(status_code: int, kind: str, message: str) -> JSONResponse:",
        '    return JSONResponse(status_code=status_code, content={"error": message, "kind": kind})',
        "",
        "",
        f"def _serialize(row: {names['model']}) -> dict:",
        f'    return {names["select"]}.model_validate(row).model_dump(mode="json")',
    ]
    for method in selected:
        lines.append("")
        lines.append("")
        lines.extend(_HANDLERS[method](ids, names))
    lines.append("")
    return "\n".join(lines)


def compile_endpoint(entity_name: str, methods: Iterable, route: Optional[str] = None) -> GeneratedArtifact:
    """Compile the endpoint artifact for an entity."""
    ids = derive_identifiers(entity_name)
    return GeneratedArtifact(
        kind=ArtifactKind.ENDPOINT,
        entity=ids.canonical_name,
        target_path=artifact_path(ids.canonical_name, ArtifactKind.ENDPOINT),
        content=render_endpoint(entity_name, methods, route),
    )
