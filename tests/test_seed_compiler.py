"""Tests for seed module generation."""
import pytest

from schemapilot.core.errors import NamingConflictError, ValidationError
from schemapilot.generators.render_seed import compile_seed, render_seed, validate_rows
from schemapilot.generators.types import ArtifactKind, EntitySpec

ALBUMS = EntitySpec.build("Popular albums", fields=[
    {"name": "title", "kind": "short_text", "constraints": ["required"]},
    {"name": "artist", "kind": "short_text", "constraints": ["required"]},
    {"name": "popularity", "kind": "integer"},
    {"name": "explicit", "kind": "boolean"},
    {"name": "releasedAt", "kind": "timestamp"},
])


def test_rows_are_checked_against_the_insert_shape():
    rows = validate_rows(ALBUMS, [
        {"releasedAt": "1971-06-22T00:00:00Z", "artist": "Joni Mitchell", "title": "Blue"},
        {"title": "Hejira", "artist": "Joni Mitchell", "popularity": 70, "explicit": False, "releasedAt": None},
    ])
    # keys follow field declaration order
    assert list(rows[0]) == ["title", "artist", "releasedAt"]
    assert rows[1]["explicit"] is False


@pytest.mark.parametrize("row, message", [
    ({"title": "Blue"}, "missing required field 'artist'"),
    ({"title": "Blue", "artist": None}, "missing required field 'artist'"),
    ({"title": "Blue", "artist": "Joni", "id": 1}, "unknown field(s): id"),
    ({"title": "Blue", "artist": "Joni", "createdAt": "2024-01-01"}, "unknown field(s): createdAt"),
    ({"title": "Blue", "artist": "Joni", "popularity": "90"}, "expected an integer"),
    ({"title": "Blue", "artist": "Joni", "popularity": True}, "expected an integer"),
    ({"title": "Blue", "artist": "Joni", "explicit": 1}, "expected true or false"),
    ({"title": "Blue", "artist": "Joni", "releasedAt": "last summer"}, "ISO 8601"),
    ({"title": "x" * 256, "artist": "Joni"}, "longer than 255"),
])
def test_invalid_rows_are_rejected(row, message):
    with pytest.raises(ValidationError) as exc_info:
        validate_rows(ALBUMS, [row])
    assert message in str(exc_info.value)
    assert "Row 0" in str(exc_info.value)


def test_empty_row_list_is_rejected():
    with pytest.raises(ValidationError):
        validate_rows(ALBUMS, [])


def test_seed_module_uses_generated_model_and_insert_shape():
    content = render_seed(ALBUMS, [{"title": "Blue", "artist": "Joni Mitchell"}])
    assert "from app.models.popular_albums import PopularAlbums" in content
    assert "from app.schemas.popular_albums import InsertPopularAlbums" in content
    assert "def seed_popular_albums() -> int:" in content
    assert "{'title': 'Blue', 'artist': 'Joni Mitchell'}" in content
    assert 'if __name__ == "__main__":' in content
    compile(content, "app/seeds/popular_albums.py", "exec")


def test_compile_seed_artifact():
    rows = [{"title": "Blue", "artist": "Joni Mitchell"}]
    artifact = compile_seed(ALBUMS, rows)
    assert artifact.kind == ArtifactKind.SEED
    assert artifact.target_path == "app/seeds/popular_albums.py"
    assert artifact.content == compile_seed(ALBUMS, rows).content


def test_reserved_field_names_are_rejected():
    entity = EntitySpec.build("notes", fields=[{"name": "id", "kind": "integer"}])
    with pytest.raises(NamingConflictError):
        render_seed(entity, [{"id": 1}])
