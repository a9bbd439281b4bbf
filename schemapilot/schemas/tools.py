"""Input contracts for every tool the reasoning engine may call."""
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class ToolInput(BaseModel):
    model_config = ConfigDict(extra="forbid")


class ListFilesInput(ToolInput):
    path: Optional[str] = Field(None, description="Relative directory to list. Defaults to the project root.")


class ReadFileInput(ToolInput):
    path: str = Field(..., description="Relative path of the file to read.")


class WriteFileInput(ToolInput):
    path: str = Field(..., description="Relative path of the file to create or overwrite.")
    content: str = Field(..., description="Full file content.")


class EditFileInput(ToolInput):
    path: str = Field(..., description="Relative path of the file to edit.")
    old_str: Optional[str] = Field(
        None,
        description="Exact text to replace; must occur exactly once. Omit to create the file with new_str.",
    )
    new_str: str = Field(..., description="Replacement text (or the whole file when old_str is omitted).")


class AnalyzeRequestInput(ToolInput):
    request: str = Field(..., description="The user's request, verbatim.")


class AnalyzeSchemaInput(ToolInput):
    entity: Optional[str] = Field(None, description="Only report this entity's schema.")


class FieldInput(ToolInput):
    name: str = Field(..., examples=["title"])
    kind: str = Field(
        "long_text",
        validation_alias=AliasChoices("kind", "type"),
        description="short_text, long_text, integer, boolean or timestamp.",
        examples=["short_text"],
    )
    constraints: List[str] = Field(default_factory=list, description="Any of: required, unique, primary.")


class EntityInput(ToolInput):
    name: str = Field(..., examples=["popular_albums"])
    description: str = ""
    fields: List[FieldInput] = Field(
        default_factory=list,
        description="User fields only; id, createdAt and updatedAt are added automatically.",
    )


class CreateSchemaInput(EntityInput):
    pass


class CreateMultipleSchemasInput(ToolInput):
    entities: List[EntityInput] = Field(..., min_length=1)


class GenerateMigrationInput(ToolInput):
    label: Optional[str] = Field(None, description="Optional migration message.", examples=["add popular albums"])


class RunMigrationInput(ToolInput):
    pass


class CreateApiEndpointInput(ToolInput):
    entity: str = Field(..., description="Entity name whose schema was already created.")
    methods: List[str] = Field(
        default_factory=lambda: ["GET", "POST", "PUT", "DELETE"],
        description="Subset of GET, POST, PUT, DELETE.",
    )
    route: Optional[str] = Field(None, description="Route segment under /api. Defaults to the kebab-case entity name.")


class CreateApiClientHookInput(ToolInput):
    entity: str = Field(..., description="Entity name whose endpoint was already created.")
    route: Optional[str] = Field(None, description="Route segment used when the endpoint was created.")


class SeedDatabaseInput(ToolInput):
    entity: str = Field(..., description="Entity name whose schema was already created.")
    rows: List[Dict[str, Any]] = Field(
        ...,
        min_length=1,
        description="Sample rows using the entity's field names; id, createdAt and updatedAt are not allowed.",
        examples=[[{"title": "Blue", "artist": "Joni Mitchell"}]],
    )
