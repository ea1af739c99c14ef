"""
Pivot Pool - Configuration

Pool constants (pivot ticker, fee, default seed) and server settings.
Server settings come from the environment, optionally pre-loaded from a
.env file (chmod 600 recommended when it holds the secret key).
"""

import logging
import os
import secrets
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from .pool_types import HISTORY_LIMIT
from .store import MAX_SESSIONS, SESSION_MAX_AGE

log = logging.getLogger(__name__)

# =============================================================================
# POOL DEFAULTS
# =============================================================================

PIVOT_TICKER = "KHU"
FEE_BPS = 30  # 0.30%

# Default pool: 100k KHU, two test assets at 50/50
SEED_TOTAL_PIVOT = Decimal("100000")
SEED_RESERVES: Dict[str, Tuple[str, int, int]] = {
    # ticker: (reserve, weight_bps, decimals)
    "TBTC": ("2.5", 5000, 8),
    "TUSDC": ("50000", 5000, 6),
}

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class PoolConfig:
    pivot_ticker: str = PIVOT_TICKER
    fee_bps: int = FEE_BPS
    history_limit: int = HISTORY_LIMIT
    seed_total_pivot: Decimal = SEED_TOTAL_PIVOT
    seed_reserves: Dict[str, Tuple[str, int, int]] = field(default_factory=lambda: dict(SEED_RESERVES))


DEFAULT_POOL_CONFIG = PoolConfig()


# =============================================================================
# SERVER SETTINGS
# =============================================================================

@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8090
    store: str = "memory"           # "memory" or path to a JSON file
    secret_key: str = ""
    log_level: str = "INFO"
    session_max_age: int = SESSION_MAX_AGE
    max_sessions: int = MAX_SESSIONS
    # Origins allowed to send the session cookie cross-site; empty = no credentials
    cors_origins: List[str] = field(default_factory=list)
    pool: PoolConfig = field(default_factory=PoolConfig)

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "ServerConfig":
        """Build settings from PIVOT_POOL_* variables."""
        if env_file:
            load_env_file(env_file)

        secret_key = os.environ.get("PIVOT_POOL_SECRET_KEY", "")
        if not secret_key:
            log.warning("PIVOT_POOL_SECRET_KEY not set - sessions reset on restart")
            secret_key = secrets.token_hex(32)

        return cls(
            host=os.environ.get("PIVOT_POOL_HOST", cls.host),
            port=int(os.environ.get("PIVOT_POOL_PORT", cls.port)),
            store=os.environ.get("PIVOT_POOL_STORE", cls.store),
            secret_key=secret_key,
            log_level=os.environ.get("PIVOT_POOL_LOG_LEVEL", cls.log_level).upper(),
            session_max_age=int(os.environ.get("PIVOT_POOL_SESSION_MAX_AGE", cls.session_max_age)),
            max_sessions=int(os.environ.get("PIVOT_POOL_MAX_SESSIONS", cls.max_sessions)),
            cors_origins=[o.strip() for o in os.environ.get("PIVOT_POOL_CORS_ORIGINS", "").split(",")
                          if o.strip()],
        )


def load_env_file(path: str) -> int:
    """
    Load KEY=VALUE lines into os.environ without overriding existing values.

    Returns the number of variables read from the file (0 if missing).
    """
    if not os.path.exists(path):
        return 0

    log.info(f"Loading config from {path}")
    count = 0
    with open(path) as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#") and "=" in line:
                key, value = line.split("=", 1)
                os.environ.setdefault(key.strip(), value.strip().strip('"').strip("'"))
                count += 1
    return count


def setup_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
    )
