"""Seed module rendering: sample rows inserted through the generated Insert shape."""
from datetime import datetime
from pprint import pformat
from typing import Any, Dict, List, Sequence

from schemapilot.core.errors import ValidationError
from schemapilot.generators.render_schema import check_field_names, type_names
from schemapilot.generators.types import ArtifactKind, EntitySpec, FieldKind, FieldSpec, GeneratedArtifact, artifact_path
from schemapilot.generators.utils import derive_identifiers

# Matches the String(255) column used for short_text
SHORT_TEXT_MAX = 255


def _check_value(field: FieldSpec, value: Any) -> None:
    kind = field.kind
    if kind in (FieldKind.SHORT_TEXT, FieldKind.LONG_TEXT):
        if not isinstance(value, str):
            raise ValueError("expected a string")
        if kind == FieldKind.SHORT_TEXT and len(value) > SHORT_TEXT_MAX:
            raise ValueError(f"longer than {SHORT_TEXT_MAX} characters")
    elif kind == FieldKind.INTEGER:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError("expected an integer")
    elif kind == FieldKind.BOOLEAN:
        if not isinstance(value, bool):
            raise ValueError("expected true or false")
    elif kind == FieldKind.TIMESTAMP:
        if not isinstance(value, str):
            raise ValueError("expected an ISO 8601 timestamp string")
        try:
            datetime.fromisoformat(value[:-1] + "+00:00" if value.endswith("Z") else value)
        except ValueError:
            raise ValueError("expected an ISO 8601 timestamp string") from None


def validate_rows(entity: EntitySpec, rows: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Check sample rows against the entity's Insert shape.

    Unknown keys (including id, createdAt and updatedAt) and missing required
    fields are rejected, as are values of the wrong kind. Rows are returned
    with keys in field declaration order.
    """
    if not rows:
        raise ValidationError(f"At least one row is required to seed '{entity.name}'")
    fields = {f.name: f for f in entity.fields}
    cleaned: List[Dict[str, Any]] = []
    for index, row in enumerate(rows):
        unknown = [key for key in row if key not in fields]
        if unknown:
            raise ValidationError(f"Row {index} for '{entity.name}' has unknown field(s): {', '.join(unknown)}")
        for field in entity.fields:
            value = row.get(field.name)
            if value is None:
                if field.required:
                    raise ValidationError(f"Row {index} for '{entity.name}' is missing required field '{field.name}'")
                continue
            try:
                _check_value(field, value)
            except ValueError as e:
                raise ValidationError(f"Row {index} for '{entity.name}', field '{field.name}': {e}") from None
        cleaned.append({f.name: row[f.name] for f in entity.fields if f.name in row})
    return cleaned


def render_seed(entity: EntitySpec, rows: Sequence[Dict[str, Any]]) -> str:
    """Generate app/seeds/<entity>.py, runnable with ``python -m app.seeds.<entity>``."""
    check_field_names(entity)
    cleaned = validate_rows(entity, rows)
    ids = derive_identifiers(entity.name)
    names = type_names(entity.name)
    table = ids.canonical_name

    lines = [
        f'"""Sample rows for {table} (generated by schemapilot)."""',
        "from app.db.session import SessionLocal",
        f"from app.models.{table} import {names['model']}",
        f"from app.schemas.{table} import {names['insert']}",
        "",
        f"ROWS = {pformat(cleaned, width=100, sort_dicts=False)}",
        "",
        "",
        f"def seed_{table}() -> int:",
        '    """Insert ROWS and return how many rows were written."""',
        "    db = SessionLocal()",
        "    try:",
        "        for row in ROWS:",
        f"            data = {names['insert']}.model_validate(row)",
        f"            db.add({names['model']}(**data.model_dump()))",
        "        db.commit()",
        "    except Exception:",
        "        db.rollback()",
        "        raise",
        "    finally:",
        "        db.close()",
        "    return len(ROWS)",
        "",
        "",
        'if __name__ == "__main__":',
        f'    print(f"Seeded {{seed_{table}()}} {table} rows")',
        "",
    ]
    return "\n".join(lines)


def compile_seed(entity: EntitySpec, rows: Sequence[Dict[str, Any]]) -> GeneratedArtifact:
    return GeneratedArtifact(
        kind=ArtifactKind.SEED,
        entity=entity.name,
        target_path=artifact_path(entity.name, ArtifactKind.SEED),
        content=render_seed(entity, rows),
    )
