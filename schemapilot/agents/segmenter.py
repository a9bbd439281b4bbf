"""
Request segmenter.
Splits a free-text feature request into entity specifications using the
trigger-phrase table in ``entity_templates.yaml``.
"""
import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from schemapilot.core.errors import ValidationError
from schemapilot.generators.types import EntitySpec, SegmentationResult

log = logging.getLogger(__name__)

TEMPLATES_PATH = Path(__file__).with_name("entity_templates.yaml")

_QUOTES = str.maketrans({"‘": "'", "’": "'", "“": '"', "”": '"'})


@dataclass(frozen=True)
class TemplateRule:
    """One (trigger phrases -> entity template) row."""
    triggers: Tuple[str, ...]
    entity: EntitySpec

    def matches(self, normalized_request: str) -> bool:
        return any(trigger in normalized_request for trigger in self.triggers)


@dataclass(frozen=True)
class TemplateTable:
    rules: Tuple[TemplateRule, ...]
    fallbacks: Tuple[TemplateRule, ...] = ()


def normalize_request(request: str) -> str:
    """Lowercase, fold curly quotes and collapse whitespace."""
    text = (request or "").translate(_QUOTES).lower()
    return re.sub(r"\s+", " ", text).strip()


def _parse_rule(raw: Dict[str, Any]) -> TemplateRule:
    triggers = raw.get("triggers") or []
    if not triggers:
        raise ValidationError(f"Template '{raw.get('name')}' has no triggers")
    entity = EntitySpec.build(raw["name"], raw.get("description", ""), raw.get("fields") or [])
    return TemplateRule(
        triggers=tuple(normalize_request(t) for t in triggers),
        entity=entity,
    )


def parse_templates(data: Dict[str, Any]) -> TemplateTable:
    """Build a TemplateTable from the loaded YAML mapping."""
    if not isinstance(data, dict):
        raise ValidationError("Entity template table must be a mapping with 'rules' and 'fallbacks'")
    return TemplateTable(
        rules=tuple(_parse_rule(r) for r in data.get("rules") or []),
        fallbacks=tuple(_parse_rule(r) for r in data.get("fallbacks") or []),
    )


def load_templates(path: Optional[Path] = None) -> TemplateTable:
    """Load a template table from YAML (defaults to the bundled table)."""
    if path is None:
        return _default_templates()
    with open(path, "r", encoding="utf-8") as f:
        return parse_templates(yaml.safe_load(f))


@lru_cache(maxsize=1)
def _default_templates() -> TemplateTable:
    with open(TEMPLATES_PATH, "r", encoding="utf-8") as f:
        return parse_templates(yaml.safe_load(f))


def segment_request(request: str, table: Optional[TemplateTable] = None) -> SegmentationResult:
    """
    Discover entities in a request.

    Every matching rule contributes one entity, in table order rather than in
    the order the phrases appear in the request. Fallbacks are only consulted
    when no rule matched, and at most one fallback is used. An empty result
    means the user should be asked to clarify.

    Args:
        request: Raw user request
        table: Template table (defaults to the bundled one)

    Returns:
        SegmentationResult with the discovered entities
    """
    table = table or load_templates()
    text = normalize_request(request)

    entities: List[EntitySpec] = []
    seen = set()
    for rule in table.rules:
        if rule.matches(text) and rule.entity.name not in seen:
            entities.append(rule.entity)
            seen.add(rule.entity.name)

    if not entities:
        for rule in table.fallbacks:
            if rule.matches(text):
                entities.append(rule.entity)
                break

    log.debug("Segmented request into %d entities: %s", len(entities), [e.name for e in entities])
    return SegmentationResult(request=request, entities=entities)
