# nav_config.py
# All tuneable constants in one place.
# Pass a NavConfig instance to every module that needs settings.

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

GH_BASE_URL_DEFAULT: str = "https://gh.heatwaves.app"

WALKING_SPEED_KMH: float = 5.0  # km/h


# ---------------------------------------------------------------------------
# Main config
# ---------------------------------------------------------------------------

@dataclass
class NavConfig:
    # Routing service
    gh_base_url: str = GH_BASE_URL_DEFAULT
    gh_api_key: Optional[str] = None
    locale: str = "en"
    request_timeout_ms: int = 12_000
    cache_ttl_s: float = 30.0
    max_workers: int = 6                   # concurrent HTTP requests
    apply_custom_models: bool = False      # send per-profile weighting presets

    # Fallback routes
    walking_speed_kmh: float = WALKING_SPEED_KMH

    # Progress tracking
    step_advance_threshold_m: float = 12.0  # step remaining below this → next step
    arrival_threshold_m: float = 15.0       # total remaining below this on last step → arrived
    min_eta_speed_mps: float = 0.5          # floor for average-speed ETA

    # Rerouting
    off_route_threshold_m: float = 40.0
    off_route_grace_s: float = 6.0          # time off-route before a reroute fires
    reroute_cooldown_s: float = 12.0        # minimum gap between reroutes

    @property
    def walking_speed_mps(self) -> float:
        return self.walking_speed_kmh * 1000 / 3600

    @property
    def request_timeout_s(self) -> float:
        return self.request_timeout_ms / 1000

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None, **overrides) -> "NavConfig":
        """
        Build a config from environment variables (and a .env file if present).

        Recognised variables:
            GH_BASE_URL / GRAPHHOPPER_BASE_URL
            GH_API_KEY / GRAPHHOPPER_API_KEY
            WALKNAV_REQUEST_TIMEOUT_MS

        Keyword overrides win over the environment.
        """
        load_dotenv(dotenv_path)
        values = {}

        base_url = os.getenv("GH_BASE_URL") or os.getenv("GRAPHHOPPER_BASE_URL")
        if base_url:
            values["gh_base_url"] = base_url

        api_key = os.getenv("GH_API_KEY") or os.getenv("GRAPHHOPPER_API_KEY")
        if api_key:
            values["gh_api_key"] = api_key

        timeout = os.getenv("WALKNAV_REQUEST_TIMEOUT_MS")
        if timeout:
            values["request_timeout_ms"] = int(timeout)

        values.update(overrides)
        return cls(**values)
