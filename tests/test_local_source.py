"""Tests for the local directory source."""

from pathlib import Path

import pytest
from conftest import make_image_bytes

from gallery_ingest.errors import InputError
from gallery_ingest.source.local import LocalFolderSource, guess_image_type


def _build_tree(root: Path) -> None:
    (root / "a" / "b").mkdir(parents=True)
    (root / "top.jpg").write_bytes(make_image_bytes("JPEG"))
    (root / "notes.txt").write_text("not an image")
    (root / "a" / "mid.png").write_bytes(make_image_bytes("PNG"))
    (root / "a" / "b" / "deep.gif").write_bytes(make_image_bytes("GIF"))


def test_fetches_every_image_under_root(tmp_path):
    _build_tree(tmp_path)
    assets = list(LocalFolderSource().list_and_fetch(str(tmp_path)))

    assert sorted(a.name for a in assets) == ["deep.gif", "mid.png", "top.jpg"]
    by_name = {a.name: a for a in assets}
    assert by_name["mid.png"].mime_type == "image/png"
    assert by_name["deep.gif"].declared_size == len(by_name["deep.gif"].data)


def test_relative_reference_uses_base_dir(tmp_path):
    _build_tree(tmp_path)
    source = LocalFolderSource(base_dir=tmp_path)
    assert sorted(a.name for a in source.list_and_fetch("a")) == ["deep.gif", "mid.png"]


def test_missing_directory_is_bad_input(tmp_path):
    with pytest.raises(InputError):
        LocalFolderSource().resolve_folder(str(tmp_path / "missing"))
    with pytest.raises(InputError):
        LocalFolderSource().resolve_folder("   ")


def test_unreadable_file_is_skipped(tmp_path, monkeypatch):
    _build_tree(tmp_path)
    original = Path.read_bytes

    def flaky_read(self):
        if self.name == "mid.png":
            raise PermissionError("denied")
        return original(self)

    monkeypatch.setattr(Path, "read_bytes", flaky_read)
    assets = list(LocalFolderSource().list_and_fetch(str(tmp_path)))
    assert sorted(a.name for a in assets) == ["deep.gif", "top.jpg"]


def test_guess_image_type():
    assert guess_image_type("photo.JPG") == "image/jpeg"
    assert guess_image_type("scan.png") == "image/png"
    assert guess_image_type("readme.md") is None
    assert guess_image_type("noext") is None
