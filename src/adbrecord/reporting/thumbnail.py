from __future__ import annotations

from pathlib import Path

from PIL import Image

from ..utils.logging import get_logger

_log = get_logger(__name__)

DEFAULT_THUMBNAIL_SIZE = 640


def make_thumbnail(source: Path, dest: Path, size: int = DEFAULT_THUMBNAIL_SIZE) -> bool:
    """
    Shrink `source` to fit within size x size and save it as JPEG at `dest`.

    On success the source file is deleted. Best-effort: an unreadable or missing
    source is logged and leaves everything in place.

    Returns:
        bool: True if the thumbnail was written.
    """
    if not source.exists():
        _log.warning("Screenshot not found, no thumbnail", action="screenshot", path=str(source))
        return False
    try:
        with Image.open(source) as img:
            img.thumbnail((size, size))
            img.convert("RGB").save(dest, format="JPEG")
    except OSError as e:
        _log.warning(
            "Failed to create screenshot thumbnail",
            action="screenshot",
            path=str(source),
            error=str(e),
        )
        return False
    source.unlink(missing_ok=True)
    return True
