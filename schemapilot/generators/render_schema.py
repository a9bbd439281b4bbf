"""Storage schema and type-definition rendering (SQLAlchemy model + Pydantic shapes)."""
from typing import Dict, Tuple

from schemapilot.core.errors import NamingConflictError
from schemapilot.generators.types import (
    ArtifactKind,
    Constraint,
    EntitySpec,
    FieldKind,
    FieldSpec,
    GeneratedArtifact,
    artifact_path,
)
from schemapilot.generators.utils import derive_identifiers, to_snake_case


# Implicit columns appended to every table; user fields may not reuse these names.
RESERVED_FIELDS = {"id", "createdAt", "updatedAt", "created_at", "updated_at"}

_COLUMN_TYPES = {
    FieldKind.SHORT_TEXT: "String(255)",
    FieldKind.LONG_TEXT: "Text",
    FieldKind.INTEGER: "Integer",
    FieldKind.BOOLEAN: "Boolean",
    FieldKind.TIMESTAMP: "DateTime",
}

_CONSTRAINT_ARGS = {
    Constraint.REQUIRED: "nullable=False",
    Constraint.PRIMARY: "primary_key=True",
    Constraint.UNIQUE: "unique=True",
}

_PYTHON_TYPES = {
    FieldKind.SHORT_TEXT: "str",
    FieldKind.LONG_TEXT: "str",
    FieldKind.INTEGER: "int",
    FieldKind.BOOLEAN: "bool",
    FieldKind.TIMESTAMP: "datetime",
}

IMPLICIT_COLUMNS = [
    '    id = Column("id", Integer, primary_key=True, autoincrement=True)',
    '    createdAt = Column("created_at", DateTime, nullable=False, server_default=func.now())',
    '    updatedAt = Column("updated_at", DateTime, nullable=False, server_default=func.now(), onupdate=func.now())',
]


def check_field_names(entity: EntitySpec) -> None:
    """Reject user fields that collide with implicit columns or with each other's column names."""
    columns: Dict[str, str] = {}
    for field in entity.fields:
        if field.name in RESERVED_FIELDS:
            raise NamingConflictError(
                f"Field '{field.name}' in '{entity.name}' is reserved: id, createdAt and updatedAt are added automatically"
            )
        column = to_snake_case(field.name)
        if column in RESERVED_FIELDS or column in columns:
            other = columns.get(column, column)
            raise NamingConflictError(
                f"Field '{field.name}' in '{entity.name}' maps to column '{column}', already used by '{other}'"
            )
        columns[column] = field.name


def _column_type(field: FieldSpec) -> str:
    return _COLUMN_TYPES.get(field.kind, "Text")


def _render_column(field: FieldSpec) -> str:
    # Constraint arguments keep the order they were declared in.
    parts = [f'"{to_snake_case(field.name)}"', _column_type(field)]
    parts.extend(_CONSTRAINT_ARGS[c] for c in field.constraints)
    return f"    {field.name} = Column({', '.join(parts)})"


def _comment(text: str) -> str:
    return " ".join(text.split())


def render_schema(entity: EntitySpec) -> str:
    """Generate the SQLAlchemy model module for an entity."""
    check_field_names(entity)
    ids = derive_identifiers(entity.name)

    lines = [
        f'"""SQLAlchemy model for {ids.canonical_name} (generated by schemapilot)."""',
        "from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, func",
        "",
        "from app.db.session import Base",
        "",
        "",
    ]
    if entity.description:
        lines.append(f"# {_comment(entity.description)}")
    lines.append(f"class {ids.type_name}(Base):")
    lines.append(f'    __tablename__ = "{ids.canonical_name}"')
    lines.append("")
    for field in entity.fields:
        lines.append(_render_column(field))
    lines.extend(IMPLICIT_COLUMNS)
    lines.append("")
    return "\n".join(lines)


def _annotation(field: FieldSpec, optional: bool) -> str:
    base = _PYTHON_TYPES.get(field.kind, "str")
    if optional:
        return f"{field.name}: Optional[{base}] = None"
    return f"{field.name}: {base}"


def render_type_definitions(entity: EntitySpec) -> str:
    """Generate Insert/Update/Select Pydantic shapes for an entity."""
    check_field_names(entity)
    ids = derive_identifiers(entity.name)
    names = type_names(entity.name)

    lines = [
        f'"""Pydantic shapes for {ids.canonical_name} (generated by schemapilot)."""',
        "from datetime import datetime",
        "from typing import Optional",
        "",
        "from pydantic import BaseModel, ConfigDict",
        "",
        "",
    ]

    # Insert shape: what a client may send on create
    lines.append(f"class {names['insert']}(BaseModel):")
    lines.append('    model_config = ConfigDict(extra="forbid")')
    lines.append("")
    for field in entity.fields:
        lines.append(f"    {_annotation(field, optional=not field.required)}")
    lines.append("")
    lines.append("")

    # Update shape: every field optional
    lines.append(f"class {names['update']}(BaseModel):")
    lines.append('    model_config = ConfigDict(extra="forbid")')
    lines.append("")
    for field in entity.fields:
        lines.append(f"    {_annotation(field, optional=True)}")
    lines.append("")
    lines.append("")

    # Select shape: a stored row
    lines.append(f"class {names['select']}(BaseModel):")
    lines.append("    model_config = ConfigDict(from_attributes=True)")
    lines.append("")
    for field in entity.fields:
        lines.append(f"    {_annotation(field, optional=not field.required)}")
    lines.append("    id: int")
    lines.append("    createdAt: datetime")
    lines.append("    updatedAt: datetime")
    lines.append("")
    return "\n".join(lines)


def type_names(entity_name: str) -> Dict[str, str]:
    """Names of the generated shapes, derived from the entity's type name."""
    type_name = derive_identifiers(entity_name).type_name
    return {
        "model": type_name,
        "insert": f"Insert{type_name}",
        "update": f"Update{type_name}",
        "select": f"Select{type_name}",
    }


def compile_schema(entity: EntitySpec) -> Tuple[GeneratedArtifact, GeneratedArtifact]:
    """Compile an entity into its schema artifact and its type-definitions artifact."""
    schema = GeneratedArtifact(
        kind=ArtifactKind.SCHEMA,
        entity=entity.name,
        target_path=artifact_path(entity.name, ArtifactKind.SCHEMA),
        content=render_schema(entity),
    )
    types = GeneratedArtifact(
        kind=ArtifactKind.TYPE_DEFINITIONS,
        entity=entity.name,
        target_path=artifact_path(entity.name, ArtifactKind.TYPE_DEFINITIONS),
        content=render_type_definitions(entity),
    )
    return schema, types
