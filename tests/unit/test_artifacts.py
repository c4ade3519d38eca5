from __future__ import annotations

from pathlib import Path

from PIL import Image

from adbrecord.reporting.artifacts import ArtifactLocation, resolve_test_dir
from adbrecord.reporting.thumbnail import make_thumbnail


def test_resolve_test_dir_is_idempotent(tmp_path: Path) -> None:
    first = resolve_test_dir(tmp_path, "LoginTest", "testLogin")
    (first / "keep.txt").write_text("x")

    second = resolve_test_dir(tmp_path, "LoginTest", "testLogin")

    assert first == second == tmp_path / "LoginTest" / "testLogin"
    assert (second / "keep.txt").read_text() == "x"


def test_artifact_location_names_files_after_device(tmp_path: Path) -> None:
    loc = ArtifactLocation.resolve(tmp_path, "C", "m", "emulator-5554")

    assert loc.directory.is_dir()
    assert loc.screenshot == tmp_path / "C" / "m" / "emulator-5554.jpg"
    assert loc.video == tmp_path / "C" / "m" / "emulator-5554.mp4"
    assert loc.raw_screenshot.suffix == ".png"


def test_make_thumbnail_shrinks_and_replaces_png(tmp_path: Path) -> None:
    src = tmp_path / "dev.png"
    Image.new("RGBA", (1080, 2400), (10, 20, 30, 255)).save(src)
    dest = tmp_path / "dev.jpg"

    assert make_thumbnail(src, dest, size=640) is True

    assert not src.exists()
    with Image.open(dest) as img:
        assert img.format == "JPEG"
        assert max(img.size) == 640
        assert img.size[0] < img.size[1]


def test_make_thumbnail_missing_source(tmp_path: Path) -> None:
    assert make_thumbnail(tmp_path / "nope.png", tmp_path / "nope.jpg") is False
    assert not (tmp_path / "nope.jpg").exists()


def test_make_thumbnail_unreadable_source_is_kept(tmp_path: Path) -> None:
    src = tmp_path / "broken.png"
    src.write_bytes(b"not an image")

    assert make_thumbnail(src, tmp_path / "broken.jpg") is False
    assert src.exists()
