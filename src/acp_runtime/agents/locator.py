"""Agent binary discovery.

Resolves an agent executable by probing a fixed, ordered list of install
locations:

1. the bundled ``bin/`` directory shipped next to the package
2. the user install directory (``~/.acp-runtime/bin``)
3. a development tree
4. any extra directories from config

Legacy binary names are probed after the primary name, across the same
location list.
"""

from __future__ import annotations

import platform
from collections.abc import Iterable
from pathlib import Path

from acp_runtime.config.schema import AgentsConfig
from acp_runtime.errors import AgentBinaryNotFoundError
from acp_runtime.logging import get_logger

log = get_logger("agents.locator")

_WINDOWS = platform.system() == "Windows"

DEFAULT_BUNDLED_DIR = Path(__file__).resolve().parent.parent / "bin"
DEFAULT_USER_DIR = Path("~/.acp-runtime/bin")
DEFAULT_DEV_DIR = Path("~/Projects/acp-runtime/embedded-runtime/bin")


def executable_suffix(windows: bool | None = None) -> str:
    """Return the platform executable suffix."""
    if windows is None:
        windows = _WINDOWS
    return ".exe" if windows else ""


class BinaryLocator:
    """Finds agent executables on disk."""

    def __init__(
        self,
        config: AgentsConfig | None = None,
        *,
        windows: bool | None = None,
    ) -> None:
        self._config = config or AgentsConfig()
        self._suffix = executable_suffix(windows)

    def search_dirs(self) -> list[Path]:
        """Directories probed, in priority order."""
        cfg = self._config
        dirs = [
            Path(cfg.bundled_dir) if cfg.bundled_dir else DEFAULT_BUNDLED_DIR,
            Path(cfg.user_dir) if cfg.user_dir else DEFAULT_USER_DIR,
            Path(cfg.dev_dir) if cfg.dev_dir else DEFAULT_DEV_DIR,
        ]
        dirs.extend(Path(d) for d in cfg.extra_search_dirs)
        return [d.expanduser().resolve() for d in dirs]

    def candidates(self, binary: str, legacy_names: Iterable[str] = ()) -> list[Path]:
        """Every path that would be probed for ``binary``."""
        dirs = self.search_dirs()
        names = [binary, *legacy_names]
        return [d / f"{name}{self._suffix}" for name in names for d in dirs]

    def find(self, binary: str, legacy_names: Iterable[str] = ()) -> Path:
        """Resolve ``binary`` to an existing path.

        Raises:
            AgentBinaryNotFoundError: listing every candidate that was tried.
        """
        candidates = self.candidates(binary, legacy_names)
        for candidate in candidates:
            if candidate.exists():
                log.info("Found %s binary at: %s", binary, candidate)
                return candidate

        raise AgentBinaryNotFoundError(binary, [str(c) for c in candidates])
