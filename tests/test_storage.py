import pytest

from docportal.services.issuance import parse_metadata


def test_save_uses_public_path_and_sanitized_name(storage):
    stored_path = storage.save("Rapor Semester 1 (final).pdf", b"data")

    assert stored_path.startswith("/uploads/documents/")
    assert stored_path.endswith("-Rapor_Semester_1__final_.pdf")
    assert storage.read(stored_path) == b"data"


def test_paths_cannot_escape_the_uploads_root(storage):
    with pytest.raises(ValueError):
        storage.path_for("/uploads/../../etc/passwd")


def test_remove_is_best_effort(storage):
    stored_path = storage.save("a.pdf", b"data")

    storage.remove(stored_path)
    storage.remove(stored_path)
    storage.remove("/uploads/../outside.pdf")

    assert not storage.exists(stored_path)


@pytest.mark.parametrize(
    "raw, expected",
    [
        (None, None),
        ("", None),
        ('{"term": 1}', {"term": 1}),
        ("[1, 2]", {"note": [1, 2]}),
        ("not json", {"note": "not json"}),
    ],
)
def test_parse_metadata(raw, expected):
    assert parse_metadata(raw) == expected
