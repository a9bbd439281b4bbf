"""Error taxonomy shared by the compilers, tools and orchestrator."""


class SchemaPilotError(Exception):
    """Base class for all schemapilot errors."""

    kind = "error"


class ValidationError(SchemaPilotError):
    """Malformed input: bad tool arguments, naming collisions, ambiguous edits."""

    kind = "validation"


class NamingConflictError(ValidationError):
    """A user field collides with an implicit column."""

    kind = "naming_conflict"


class AmbiguousEditError(ValidationError):
    """Find-and-replace target is absent or matches more than once."""

    kind = "ambiguous_edit"


class ExternalFailure(SchemaPilotError):
    """The reasoning engine or an external process failed."""

    kind = "external"


class EngineTimeout(ExternalFailure):
    kind = "timeout"


class ProtocolError(SchemaPilotError):
    """The reasoning engine answered with something that is neither text nor one tool call."""

    kind = "protocol"
