from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


def resolve_test_dir(root: str | Path, test_class: str, test_method: str) -> Path:
    """
    Return <root>/<test_class>/<test_method>, creating it if it does not exist yet.

    Idempotent: an existing directory is left untouched. OSError from mkdir
    (permissions, disk full) propagates to the caller.
    """
    directory = Path(root) / test_class / test_method
    if not directory.is_dir():
        directory.mkdir(parents=True, exist_ok=True)
    return directory


@dataclass(frozen=True, slots=True)
class ArtifactLocation:
    """Where the screenshot and video of one (device, test class, test method) go."""

    directory: Path
    device: str

    @classmethod
    def resolve(
        cls, root: str | Path, test_class: str, test_method: str, device: str
    ) -> ArtifactLocation:
        return cls(resolve_test_dir(root, test_class, test_method), device)

    @property
    def raw_screenshot(self) -> Path:
        """PNG as pulled from the device; replaced by the JPEG thumbnail."""
        return self.directory / f"{self.device}.png"

    @property
    def screenshot(self) -> Path:
        return self.directory / f"{self.device}.jpg"

    @property
    def video(self) -> Path:
        return self.directory / f"{self.device}.mp4"
