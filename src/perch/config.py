"""Application configuration.

AppConfig is a frozen dataclass — immutable after creation, IDE-autocompletable,
no string-key dict lookups. It carries the process-level paths the static
layer resolves against; per-mount options live in ``StaticOptions``.
"""

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = AppConfig(port=3000, work_path="/srv/site")
    """

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False
    workers: int = 0  # 0 = auto-detect from CPU count (production only)

    # Reload (development mode — requires debug=True)
    reload_include: tuple[str, ...] = ()  # Extra extensions to watch (e.g. ".css", ".js")
    reload_dirs: tuple[str, ...] = ()  # Extra directories to watch alongside cwd

    # Paths
    work_path: str | Path = ""  # Empty means the process working directory
    custom_path: str | Path = "custom"  # Site overrides; relative to work_path

    # Logging
    log_level: str = "info"

    @property
    def resolved_work_path(self) -> Path:
        """Absolute work path (the process cwd when unset)."""
        if not self.work_path:
            return Path(os.getcwd())
        return Path(self.work_path).absolute()

    @property
    def resolved_custom_path(self) -> Path:
        """Absolute custom path, anchored at the work path when relative."""
        custom = Path(self.custom_path)
        if custom.is_absolute():
            return custom
        return self.resolved_work_path / custom
