"""
Runtime configuration loaded from the environment (.env supported)
"""

import os
import tempfile
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel

# Load environment variables
load_dotenv()


def _env_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings(BaseModel):
    """Server settings; every field maps to a CODEROOM_* variable"""
    host: str = "0.0.0.0"
    port: int = 4000
    log_level: str = "INFO"
    cors_origins: List[str] = ["*"]

    # Execution limits
    run_timeout: float = 5.0
    compile_timeout: float = 10.0
    output_limit: int = 20000
    max_concurrent_jobs: int = 4  # 0 disables the ceiling
    admission_timeout: float = 10.0
    workspace_root: Optional[str] = None

    # Toolchain binaries
    python_bin: str = "python3"
    node_bin: str = "node"
    cxx_bin: str = "g++"

    # Room lifecycle
    room_idle_ttl: float = 300.0
    reaper_interval: float = 60.0

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from os.environ, falling back to defaults"""
        return cls(
            host=os.getenv("CODEROOM_HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", 4000)),
            log_level=os.getenv("CODEROOM_LOG_LEVEL", "INFO").upper(),
            cors_origins=_env_list("CODEROOM_CORS_ORIGINS", "*"),
            run_timeout=float(os.getenv("CODEROOM_RUN_TIMEOUT", 5)),
            compile_timeout=float(os.getenv("CODEROOM_COMPILE_TIMEOUT", 10)),
            output_limit=int(os.getenv("CODEROOM_OUTPUT_LIMIT", 20000)),
            max_concurrent_jobs=int(os.getenv("CODEROOM_MAX_CONCURRENT_JOBS", 4)),
            admission_timeout=float(os.getenv("CODEROOM_ADMISSION_TIMEOUT", 10)),
            workspace_root=os.getenv("CODEROOM_WORKSPACE_ROOT") or tempfile.gettempdir(),
            python_bin=os.getenv("CODEROOM_PYTHON", "python3"),
            node_bin=os.getenv("CODEROOM_NODE", "node"),
            cxx_bin=os.getenv("CODEROOM_CXX", "g++"),
            room_idle_ttl=float(os.getenv("CODEROOM_ROOM_IDLE_TTL", 300)),
            reaper_interval=float(os.getenv("CODEROOM_REAPER_INTERVAL", 60)),
        )
