"""Dataclasses for entity compilation."""
import keyword
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from schemapilot.core.errors import ValidationError
from schemapilot.generators.utils import derive_identifiers


class FieldKind(str, Enum):
    SHORT_TEXT = "short_text"
    LONG_TEXT = "long_text"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    TIMESTAMP = "timestamp"

    @classmethod
    def parse(cls, raw: Any) -> "FieldKind":
        """Map a loose type label to a FieldKind; unknown labels degrade to LONG_TEXT."""
        if isinstance(raw, FieldKind):
            return raw
        key = str(raw or "").strip().lower().replace("-", "_")
        return _KIND_ALIASES.get(key, cls.LONG_TEXT)


_KIND_ALIASES = {
    "short_text": FieldKind.SHORT_TEXT,
    "varchar": FieldKind.SHORT_TEXT,
    "string": FieldKind.SHORT_TEXT,
    "str": FieldKind.SHORT_TEXT,
    "long_text": FieldKind.LONG_TEXT,
    "text": FieldKind.LONG_TEXT,
    "integer": FieldKind.INTEGER,
    "int": FieldKind.INTEGER,
    "number": FieldKind.INTEGER,
    "serial": FieldKind.INTEGER,
    "boolean": FieldKind.BOOLEAN,
    "bool": FieldKind.BOOLEAN,
    "timestamp": FieldKind.TIMESTAMP,
    "datetime": FieldKind.TIMESTAMP,
    "date": FieldKind.TIMESTAMP,
}


class Constraint(str, Enum):
    REQUIRED = "required"
    UNIQUE = "unique"
    PRIMARY = "primary"

    @classmethod
    def parse(cls, raw: Any) -> "Constraint":
        if isinstance(raw, Constraint):
            return raw
        key = str(raw or "").strip()
        constraint = _CONSTRAINT_ALIASES.get(key) or _CONSTRAINT_ALIASES.get(key.lower())
        if constraint is None:
            raise ValidationError(f"Unknown constraint '{raw}'. Expected one of: required, unique, primary")
        return constraint


_CONSTRAINT_ALIASES = {
    "required": Constraint.REQUIRED,
    "notNull": Constraint.REQUIRED,
    "notnull": Constraint.REQUIRED,
    "not_null": Constraint.REQUIRED,
    "unique": Constraint.UNIQUE,
    "primary": Constraint.PRIMARY,
    "primaryKey": Constraint.PRIMARY,
    "primarykey": Constraint.PRIMARY,
    "primary_key": Constraint.PRIMARY,
}


class ArtifactKind(str, Enum):
    SCHEMA = "schema"
    TYPE_DEFINITIONS = "type_definitions"
    ENDPOINT = "endpoint"
    HOOK = "hook"
    SEED = "seed"


def artifact_path(entity_name: str, kind: ArtifactKind) -> str:
    """Target path of an artifact, relative to the project root. Depends only on name and kind."""
    ids = derive_identifiers(entity_name)
    if kind == ArtifactKind.SCHEMA:
        return f"app/models/{ids.canonical_name}.py"
    if kind == ArtifactKind.TYPE_DEFINITIONS:
        return f"app/schemas/{ids.canonical_name}.py"
    if kind == ArtifactKind.SEED:
        return f"app/seeds/{ids.canonical_name}.py"
    if kind == ArtifactKind.ENDPOINT:
        return f"app/api/{ids.canonical_name}.py"
    return f"src/hooks/{ids.hook_name}.ts"


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"


# Handlers are always emitted in this order, whatever order they were requested in.
CANONICAL_METHOD_ORDER = (HttpMethod.GET, HttpMethod.POST, HttpMethod.PUT, HttpMethod.DELETE)


@dataclass(frozen=True)
class FieldSpec:
    """One user-declared column of an entity."""
    name: str
    kind: FieldKind = FieldKind.LONG_TEXT
    constraints: Tuple[Constraint, ...] = ()

    @classmethod
    def build(cls, name: str, kind: Any = None, constraints: Optional[Iterable[Any]] = None) -> "FieldSpec":
        name = str(name or "").strip()
        if not name.isidentifier() or keyword.iskeyword(name):
            raise ValidationError(f"Field name '{name}' is not a valid identifier")
        ordered: List[Constraint] = []
        for raw in constraints or ():
            constraint = Constraint.parse(raw)
            if constraint not in ordered:
                ordered.append(constraint)
        return cls(name=name, kind=FieldKind.parse(kind), constraints=tuple(ordered))

    @property
    def required(self) -> bool:
        return Constraint.REQUIRED in self.constraints or Constraint.PRIMARY in self.constraints

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind.value,
            "constraints": [c.value for c in self.constraints],
        }


@dataclass(frozen=True)
class EntitySpec:
    """Compiler-ready description of one entity. Implicit columns are never listed in ``fields``."""
    name: str
    description: str = ""
    fields: Tuple[FieldSpec, ...] = ()

    @classmethod
    def build(cls, label: str, description: str = "", fields: Iterable[Any] = ()) -> "EntitySpec":
        """Build from a raw label and field dicts (or FieldSpecs), deriving the canonical name."""
        built: List[FieldSpec] = []
        seen = set()
        for raw in fields:
            if isinstance(raw, FieldSpec):
                spec = raw
            else:
                spec = FieldSpec.build(
                    raw.get("name", ""),
                    raw.get("kind", raw.get("type")),
                    raw.get("constraints"),
                )
            if spec.name in seen:
                raise ValidationError(f"Duplicate field '{spec.name}' in entity '{label}'")
            seen.add(spec.name)
            built.append(spec)
        return cls(
            name=derive_identifiers(label).canonical_name,
            description=description or "",
            fields=tuple(built),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "fields": [f.to_dict() for f in self.fields],
        }


@dataclass(frozen=True)
class GeneratedArtifact:
    """One generated source file."""
    kind: ArtifactKind
    entity: str
    target_path: str  # Relative to the project root
    content: str


@dataclass
class SegmentationResult:
    """Entities discovered in a free-text request."""
    request: str
    entities: List[EntitySpec] = field(default_factory=list)

    @property
    def recommendation(self) -> str:
        if len(self.entities) > 1:
            return "Multiple entities detected. Create separate tables for each."
        if self.entities:
            return "Single entity detected."
        return "No entities detected; ask the user to clarify what should be stored."

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entitiesFound": len(self.entities),
            "entities": [e.to_dict() for e in self.entities],
            "recommendation": self.recommendation,
        }
