"""Tests for schema and type-definition generation."""
import pytest
from pydantic import ValidationError as PydanticValidationError

from schemapilot.core.errors import NamingConflictError, ValidationError
from schemapilot.generators.render_schema import compile_schema, render_schema, render_type_definitions
from schemapilot.generators.types import ArtifactKind, EntitySpec, FieldKind, FieldSpec


def _popular_albums() -> EntitySpec:
    return EntitySpec.build(
        "Popular albums",
        "Popular albums trending or featured",
        [
            {"name": "title", "kind": "short_text", "constraints": ["required"]},
            {"name": "artist", "kind": "varchar", "constraints": ["notNull"]},
            {"name": "imageUrl", "kind": "short_text"},
            {"name": "releaseYear", "kind": "integer"},
            {"name": "explicit", "kind": "boolean"},
            {"name": "releasedAt", "kind": "timestamp"},
        ],
    )


def test_schema_declares_model_and_columns():
    content = render_schema(_popular_albums())

    assert "from app.db.session import Base" in content
    assert "# Popular albums trending or featured" in content
    assert "class PopularAlbums(Base):" in content
    assert '__tablename__ = "popular_albums"' in content
    assert 'title = Column("title", String(255), nullable=False)' in content
    assert 'artist = Column("artist", String(255), nullable=False)' in content
    assert 'imageUrl = Column("image_url", String(255))' in content
    assert 'releaseYear = Column("release_year", Integer)' in content
    assert 'explicit = Column("explicit", Boolean)' in content
    assert 'releasedAt = Column("released_at", DateTime)' in content


def test_implicit_columns_are_appended_after_user_fields():
    content = render_schema(_popular_albums())
    lines = content.splitlines()

    last_user = max(i for i, line in enumerate(lines) if "releasedAt = Column" in line)
    id_line = next(i for i, line in enumerate(lines) if line.strip().startswith("id = Column"))
    created = next(i for i, line in enumerate(lines) if line.strip().startswith("createdAt = Column"))
    updated = next(i for i, line in enumerate(lines) if line.strip().startswith("updatedAt = Column"))

    assert last_user < id_line < created < updated
    assert content.count("primary_key=True") == 1
    assert content.count("server_default=func.now()") == 2


def test_implicit_columns_with_zero_user_fields():
    content = render_schema(EntitySpec.build("Bookmarks"))
    assert content.count("primary_key=True") == 1
    assert 'id = Column("id", Integer, primary_key=True, autoincrement=True)' in content
    assert 'createdAt = Column("created_at", DateTime, nullable=False' in content
    assert 'updatedAt = Column("updated_at", DateTime, nullable=False' in content


def test_constraint_order_is_preserved():
    entity = EntitySpec.build("tags", fields=[
        {"name": "slug", "kind": "short_text", "constraints": ["unique", "required"]},
        {"name": "code", "kind": "short_text", "constraints": ["required", "unique", "required"]},
    ])
    content = render_schema(entity)
    assert 'slug = Column("slug", String(255), unique=True, nullable=False)' in content
    assert 'code = Column("code", String(255), nullable=False, unique=True)' in content


def test_unknown_kind_degrades_to_text():
    entity = EntitySpec.build("events", fields=[{"name": "payload", "kind": "jsonb"}])
    assert entity.fields[0].kind == FieldKind.LONG_TEXT
    assert 'payload = Column("payload", Text)' in render_schema(entity)


def test_unknown_constraint_is_rejected():
    with pytest.raises(ValidationError):
        FieldSpec.build("title", "short_text", ["indexed"])


def test_duplicate_field_names_are_rejected():
    with pytest.raises(ValidationError):
        EntitySpec.build("songs", fields=[{"name": "title"}, {"name": "title"}])


@pytest.mark.parametrize("reserved", ["id", "createdAt", "updatedAt", "created_at"])
def test_reserved_field_names_are_rejected(reserved):
    entity = EntitySpec.build("songs", fields=[{"name": reserved, "kind": "integer"}])
    with pytest.raises(NamingConflictError):
        render_schema(entity)
    with pytest.raises(NamingConflictError):
        compile_schema(entity)


def test_fields_mapping_to_same_column_are_rejected():
    entity = EntitySpec.build("songs", fields=[{"name": "playedAt"}, {"name": "played_at"}])
    with pytest.raises(NamingConflictError):
        render_schema(entity)


def test_compile_schema_targets_and_determinism():
    first_schema, first_types = compile_schema(_popular_albums())
    second_schema, second_types = compile_schema(_popular_albums())

    assert first_schema.kind == ArtifactKind.SCHEMA
    assert first_schema.target_path == "app/models/popular_albums.py"
    assert first_types.kind == ArtifactKind.TYPE_DEFINITIONS
    assert first_types.target_path == "app/schemas/popular_albums.py"
    assert first_schema.content == second_schema.content
    assert first_types.content == second_types.content


def test_target_path_does_not_depend_on_fields():
    bare_schema, _ = compile_schema(EntitySpec.build("Popular albums"))
    full_schema, _ = compile_schema(_popular_albums())
    assert bare_schema.target_path == full_schema.target_path
    assert bare_schema.content != full_schema.content


def test_type_definitions_shapes():
    content = render_type_definitions(_popular_albums())

    insert = content[content.find("class InsertPopularAlbums"):content.find("class UpdatePopularAlbums")]
    update = content[content.find("class UpdatePopularAlbums"):content.find("class SelectPopularAlbums")]
    select = content[content.find("class SelectPopularAlbums"):]

    assert "title: str\n" in insert
    assert "imageUrl: Optional[str] = None" in insert
    assert "title: Optional[str] = None" in update
    assert "releaseYear: Optional[int] = None" in update
    assert "from_attributes=True" in select
    assert "id: int" in select
    assert "createdAt: datetime" in select
    assert "updatedAt: datetime" in select


def test_type_definitions_are_valid_pydantic_models():
    namespace = {}
    exec(render_type_definitions(_popular_albums()), namespace)

    insert = namespace["InsertPopularAlbums"](title="Blue", artist="Joni")
    assert insert.imageUrl is None

    with pytest.raises(PydanticValidationError):
        namespace["InsertPopularAlbums"](artist="Joni")
    with pytest.raises(PydanticValidationError):
        namespace["InsertPopularAlbums"](title="Blue", artist="Joni", id=4)

    update = namespace["UpdatePopularAlbums"](releaseYear=1971)
    assert update.model_dump(exclude_unset=True) == {"releaseYear": 1971}
