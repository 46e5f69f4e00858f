from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable, Mapping

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from trellis.config import EngineConfig  # noqa: E402 (import after sys.path setup)

SkeletonFactory = Callable[..., Path]


class RecordingWriter:
    """Write function double that remembers every call."""

    def __init__(self) -> None:
        self.calls: list[dict] = []

    def __call__(self, path, *, create_once, skip_tags, content, record, skip, permission_bits):
        self.calls.append(
            {
                "path": path,
                "create_once": create_once,
                "skip_tags": tuple(skip_tags),
                "content": content,
                "record": record,
                "skip": skip,
                "permission_bits": permission_bits,
            }
        )

    def by_path(self) -> dict[str, dict]:
        return {call["path"]: call for call in self.calls}

    @property
    def paths(self) -> list[str]:
        return [call["path"] for call in self.calls]


@pytest.fixture()
def share_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "share"
    directory.mkdir()
    return directory


@pytest.fixture()
def engine_config(share_dir: Path, tmp_path: Path) -> EngineConfig:
    return EngineConfig(share_dir=share_dir, state_dir=tmp_path / "state")


@pytest.fixture()
def make_skeleton(share_dir: Path) -> SkeletonFactory:
    """Create ``share/skeletons/<kind>s/<directory>`` with the given files."""

    def factory(
        name: str,
        files: Mapping[str, str] | None = None,
        *,
        kind: str = "project",
        inherits: str | None = None,
        flags: str = "",
        manifest: str | None = "",
        directory: str | None = None,
        perms: Mapping[str, int] | None = None,
    ) -> Path:
        skeleton_dir = share_dir / "skeletons" / f"{kind}s" / (directory or name)
        skeleton_dir.mkdir(parents=True, exist_ok=True)

        header = f'[skeleton]\nname = "{name}"\n'
        if inherits is not None:
            header += f'inherits = "{inherits}"\n'
        (skeleton_dir / "skeleton.toml").write_text(header + flags, encoding="utf-8")

        if manifest is not None:
            manifest_name = "drom.toml" if kind == "project" else "package.toml"
            (skeleton_dir / manifest_name).write_text(manifest, encoding="utf-8")

        for relative, content in (files or {}).items():
            path = skeleton_dir / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
            path.chmod((perms or {}).get(relative, 0o644))
        return skeleton_dir

    return factory


@pytest.fixture()
def recording_writer() -> RecordingWriter:
    return RecordingWriter()
