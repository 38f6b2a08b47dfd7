from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional


def _int(value: Optional[str]) -> Optional[int]:
    return int(value) if value not in (None, "") else None


@dataclass
class Settings:
    app_root: Path = Path("./app")
    dist_root: Path = Path("./dist")
    host: str = "127.0.0.1"
    port: int = 3000
    workers: Optional[int] = None
    debounce: float = 0.0
    lint_config: Path = Path(".sass-lint.yml")
    log_level: str = "INFO"
    log_file: Optional[Path] = None
    incremental: bool = True

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if env is None else env
        log_file = env.get("ASSETFLOW_LOG_FILE")
        return cls(
            app_root=Path(env.get("ASSETFLOW_APP_ROOT", "./app")),
            dist_root=Path(env.get("ASSETFLOW_DIST_ROOT", "./dist")),
            host=env.get("ASSETFLOW_HOST", "127.0.0.1"),
            port=int(env.get("ASSETFLOW_PORT", "3000")),
            workers=_int(env.get("ASSETFLOW_WORKERS")),
            debounce=float(env.get("ASSETFLOW_DEBOUNCE", "0")),
            lint_config=Path(env.get("ASSETFLOW_LINT_CONFIG", ".sass-lint.yml")),
            log_level=env.get("ASSETFLOW_LOG_LEVEL", "INFO").upper(),
            log_file=Path(log_file) if log_file else None,
            incremental=env.get("ASSETFLOW_INCREMENTAL", "1") not in ("0", "false", "no"),
        )
