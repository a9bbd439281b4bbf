"""Naming helpers shared by every compiler."""
import re
from dataclasses import dataclass
from typing import List

FALLBACK_IDENTIFIER = "entity"


@dataclass(frozen=True)
class EntityIdentifiers:
    canonical_name: str  # popular_albums (table name, module name)
    type_name: str  # PopularAlbums
    hook_name: str  # usePopularAlbums
    route_segment: str  # popular-albums


def _words(label: str) -> List[str]:
    """Split a raw label into lowercase alphanumeric words, honouring camelCase boundaries."""
    s1 = re.sub('(.)([A-Z][a-z]+)', r'\1_\2', label)
    s2 = re.sub('([a-z0-9])([A-Z])', r'\1_\2', s1)
    return [w for w in re.split(r'[^a-z0-9]+', s2.lower()) if w]


def to_snake_case(name: str) -> str:
    """Convert a label, PascalCase or camelCase name to snake_case."""
    return "_".join(_words(name))


def to_kebab_case(name: str) -> str:
    """Convert a label, PascalCase or camelCase name to kebab-case."""
    return "-".join(_words(name))


def to_pascal_case(name: str) -> str:
    return "".join(w[:1].upper() + w[1:] for w in _words(name))


def canonical_name(label: str) -> str:
    """Snake-case identifier for a raw entity label; ``entity`` when nothing usable remains."""
    name = to_snake_case(label or "")
    if not name:
        return FALLBACK_IDENTIFIER
    if name[0].isdigit():
        name = f"{FALLBACK_IDENTIFIER}_{name}"
    return name


def derive_identifiers(label: str) -> EntityIdentifiers:
    """Derive every identifier a generated artifact needs from one raw label."""
    name = canonical_name(label)
    type_name = to_pascal_case(name)
    return EntityIdentifiers(
        canonical_name=name,
        type_name=type_name,
        hook_name=f"use{type_name}",
        route_segment=to_kebab_case(name),
    )
