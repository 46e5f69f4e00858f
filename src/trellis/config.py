"""Configuration shared by the skeleton catalog, the pipeline and the CLI."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

ENV_SHARE_DIR = "TRELLIS_SHARE_DIR"
ENV_STATE_DIR = "TRELLIS_STATE_DIR"
ENV_VERBOSITY = "TRELLIS_VERBOSITY"

DEFAULT_STATE_DIR = ".trellis"


@dataclass(slots=True)
class EngineConfig:
    """Locations and verbosity used while rendering skeletons.

    Attributes
    ----------
    share_dir:
        Directory holding the bundled skeletons, laid out as
        ``skeletons/projects/<name>`` and ``skeletons/packages/<name>``.
    state_dir:
        Per-project state directory. Every skeleton file is mirrored under
        ``<state_dir>/skeleton`` before it is rendered so that diff tooling can
        compare the generated files with their sources.
    verbosity:
        ``0`` keeps the output quiet; higher values enable additional
        warnings such as skeletons overriding each other in a catalog.
    """

    share_dir: Path
    state_dir: Path = Path(DEFAULT_STATE_DIR)
    verbosity: int = 0

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        *,
        share_dir: str | Path | None = None,
        state_dir: str | Path | None = None,
        verbosity: int | None = None,
    ) -> "EngineConfig":
        """Build a configuration from ``environ`` and explicit overrides.

        Explicit arguments win over the ``TRELLIS_*`` environment variables.
        Without either, the share directory defaults to the current working
        directory.
        """

        env = os.environ if environ is None else environ

        if share_dir is None:
            share_dir = env.get(ENV_SHARE_DIR) or Path.cwd()
        if state_dir is None:
            state_dir = env.get(ENV_STATE_DIR) or DEFAULT_STATE_DIR
        if verbosity is None:
            raw = env.get(ENV_VERBOSITY, "0").strip() or "0"
            try:
                verbosity = int(raw)
            except ValueError as exc:
                raise ValueError(f"{ENV_VERBOSITY} must be an integer, got {raw!r}") from exc

        return cls(
            share_dir=Path(share_dir).expanduser(),
            state_dir=Path(state_dir).expanduser(),
            verbosity=verbosity,
        )

    @property
    def verbose(self) -> bool:
        return self.verbosity > 0

    @property
    def backup_dir(self) -> Path:
        return self.state_dir / "skeleton"

    def skeleton_dir(self, kind: str) -> Path:
        """Return the catalog directory for ``kind`` (``project`` or ``package``)."""

        return self.share_dir / "skeletons" / f"{kind}s"
