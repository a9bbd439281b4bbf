"""Entry points for compiling one entity into all of its artifacts."""
from typing import Iterable, List, Optional

from schemapilot.generators.render_endpoint import compile_endpoint
from schemapilot.generators.render_hook import compile_hook
from schemapilot.generators.render_schema import compile_schema
from schemapilot.generators.types import CANONICAL_METHOD_ORDER, EntitySpec, GeneratedArtifact


def compile_entity(
    entity: EntitySpec,
    methods: Iterable = CANONICAL_METHOD_ORDER,
    route: Optional[str] = None,
) -> List[GeneratedArtifact]:
    """
    Compile an entity into schema, type definitions, endpoint and hook, in that order.

    Args:
        entity: Entity to compile
        methods: HTTP methods the endpoint should implement
        route: Optional route segment override (defaults to the entity's kebab-case name)

    Returns:
        List of GeneratedArtifact objects
    """
    schema, types = compile_schema(entity)
    return [
        schema,
        types,
        compile_endpoint(entity.name, methods, route),
        compile_hook(entity.name, route),
    ]
