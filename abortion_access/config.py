"""
Config / Paths for the abortion access dashboard.
Every value can be overridden through an environment variable.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Tuple


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# ======================
# Data
# ======================

DATA_CSV = Path(os.environ.get("ABORTION_ACCESS_DATA", "data/simulated_df.csv"))


# ======================
# Routing service
# ======================

OSRM_SERVER = os.environ.get("ABORTION_ACCESS_OSRM_SERVER", "https://router.project-osrm.org").rstrip("/")
OSRM_PROFILE = "driving"
ROUTE_TIMEOUT_S = float(os.environ.get("ABORTION_ACCESS_ROUTE_TIMEOUT", "20"))
METERS_TO_MILES = 0.000621371


# ======================
# Map
# ======================

MAP_STYLE = "carto-positron"

# state code -> ((lon, lat), zoom); key order is the state dropdown order
STATE_VIEWPORTS: Dict[str, Tuple[Tuple[float, float], float]] = {
    "AL": ((-86.9023, 32.3182), 6),
    "NV": ((-116.4194, 38.8026), 6),
    # as published; this centre lies in North Dakota
    "PA": ((-101.0020, 47.5515), 6),
    "MI": ((-84.5068, 44.1822), 6),
    "OR": ((-120.5000, 43.8041), 6),
    "MO": ((-92.172851, 38.57932), 6),
}
DEFAULT_VIEWPORT: Tuple[Tuple[float, float], float] = ((-98.6, 39.8), 3.5)

ROUTE_COLOR = "#FF6B6B"
ROUTE_WIDTH = 4
ORIGIN_COLOR = "red"
DESTINATION_COLOR = "blue"
DIAGNOSTIC_COLOR = "green"


# ======================
# App
# ======================

NOTIFICATION_DURATION_MS = int(os.environ.get("ABORTION_ACCESS_NOTIFY_MS", "5000"))
DEBUG = _env_bool("ABORTION_ACCESS_DEBUG", False)
HOST = os.environ.get("ABORTION_ACCESS_HOST", "127.0.0.1")
PORT = int(os.environ.get("ABORTION_ACCESS_PORT", "8050"))
