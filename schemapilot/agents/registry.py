from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List

from schemapilot.agents import tools
from schemapilot.agents.base import ToolDefinition
from schemapilot.core.errors import ValidationError
from schemapilot.schemas.tools import (
    AnalyzeRequestInput,
    AnalyzeSchemaInput,
    CreateApiClientHookInput,
    CreateApiEndpointInput,
    CreateMultipleSchemasInput,
    CreateSchemaInput,
    EditFileInput,
    GenerateMigrationInput,
    ListFilesInput,
    ReadFileInput,
    RunMigrationInput,
    SeedDatabaseInput,
    WriteFileInput,
)


class ToolName(str, Enum):
    LIST_FILES = "list_files"
    READ_FILE = "read_file"
    WRITE_FILE = "write_file"
    EDIT_FILE = "edit_file"
    ANALYZE_REQUEST = "analyze_request"
    ANALYZE_SCHEMA = "analyze_schema"
    CREATE_SCHEMA = "create_schema"
    CREATE_MULTIPLE_SCHEMAS = "create_multiple_schemas"
    GENERATE_MIGRATION = "generate_migration"
    RUN_MIGRATION = "run_migration"
    CREATE_API_ENDPOINT = "create_api_endpoint"
    CREATE_API_CLIENT_HOOK = "create_api_client_hook"
    SEED_DATABASE = "seed_database"


@dataclass
class ToolRegistry:
    mapping: Dict[ToolName, ToolDefinition]

    def get(self, name: str) -> ToolDefinition:
        try:
            return self.mapping[ToolName(name)]
        except ValueError:
            available = ", ".join(t.value for t in self.mapping)
            raise ValidationError(f"Unknown tool '{name}'. Available: {available}") from None

    def schemas(self) -> List[Dict[str, Any]]:
        return [definition.to_openai_schema() for definition in self.mapping.values()]

    @staticmethod
    def default() -> "ToolRegistry":
        definitions = [
            ToolDefinition(
                name=ToolName.LIST_FILES.value,
                description="List files and directories at a path relative to the project root.",
                input_model=ListFilesInput,
                handler=tools.list_files,
            ),
            ToolDefinition(
                name=ToolName.READ_FILE.value,
                description="Read the contents of a file relative to the project root.",
                input_model=ReadFileInput,
                handler=tools.read_file,
            ),
            ToolDefinition(
                name=ToolName.WRITE_FILE.value,
                description="Create or overwrite a whole file.",
                input_model=WriteFileInput,
                handler=tools.write_file,
                side_effecting=True,
            ),
            ToolDefinition(
                name=ToolName.EDIT_FILE.value,
                description=(
                    "Replace old_str with new_str in a file. old_str must occur exactly once. "
                    "If old_str is omitted or the file does not exist, the file is created with new_str."
                ),
                input_model=EditFileInput,
                handler=tools.edit_file_tool,
                side_effecting=True,
            ),
            ToolDefinition(
                name=ToolName.ANALYZE_REQUEST.value,
                description="Identify every distinct data entity in the user's request. Call this first.",
                input_model=AnalyzeRequestInput,
                handler=tools.analyze_request,
            ),
            ToolDefinition(
                name=ToolName.ANALYZE_SCHEMA.value,
                description="Summarize existing model modules and which workflow stages are still pending.",
                input_model=AnalyzeSchemaInput,
                handler=tools.analyze_schema,
            ),
            ToolDefinition(
                name=ToolName.CREATE_SCHEMA.value,
                description="Generate the SQLAlchemy model and Pydantic types for one entity.",
                input_model=CreateSchemaInput,
                handler=tools.create_schema,
                side_effecting=True,
            ),
            ToolDefinition(
                name=ToolName.CREATE_MULTIPLE_SCHEMAS.value,
                description="Generate models and types for several entities at once, one table per entity.",
                input_model=CreateMultipleSchemasInput,
                handler=tools.create_multiple_schemas,
                side_effecting=True,
            ),
            ToolDefinition(
                name=ToolName.GENERATE_MIGRATION.value,
                description="Generate a database migration covering every schema written so far.",
                input_model=GenerateMigrationInput,
                handler=tools.generate_migration,
                side_effecting=True,
            ),
            ToolDefinition(
                name=ToolName.RUN_MIGRATION.value,
                description="Apply generated migrations to the database.",
                input_model=RunMigrationInput,
                handler=tools.run_migration,
                side_effecting=True,
            ),
            ToolDefinition(
                name=ToolName.CREATE_API_ENDPOINT.value,
                description="Generate a CRUD API router for an entity whose schema exists.",
                input_model=CreateApiEndpointInput,
                handler=tools.create_api_endpoint,
                side_effecting=True,
            ),
            ToolDefinition(
                name=ToolName.CREATE_API_CLIENT_HOOK.value,
                description="Generate a React data hook for an entity whose endpoint exists.",
                input_model=CreateApiClientHookInput,
                handler=tools.create_api_client_hook,
                side_effecting=True,
            ),
            ToolDefinition(
                name=ToolName.SEED_DATABASE.value,
                description=(
                    "Optional: write a seed module with sample rows for an entity whose schema exists. "
                    "Rows use the entity's field names and are checked against its insert shape."
                ),
                input_model=SeedDatabaseInput,
                handler=tools.seed_database,
                side_effecting=True,
            ),
        ]
        return ToolRegistry(mapping={ToolName(d.name): d for d in definitions})
