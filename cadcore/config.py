# ============================================================================
# CAD CORE - Configuration
# ============================================================================
# Typed defaults with CAD_* environment overrides.
# Catalogs are configuration, not core logic: they only validate input.
# ============================================================================

import json
import os
from typing import Any, Dict, List

INCIDENT_TYPES: List[str] = [
    "Commercial robbery",
    "Vehicle theft",
    "Suspicious person",
    "Domestic violence",
    "Traffic accident",
    "Medical emergency",
    "Fire",
]

SECTORS: List[str] = ["Centro", "Norte", "Sur", "Oriente", "Poniente"]

# key -> (default, value_type, category)
DEFAULT_CONFIG = {
    # Storage
    "db_path": (":memory:", "string", "storage"),
    "seed_demo_data": (True, "bool", "storage"),

    # Folios
    "folio_prefix": ("CDMX", "string", "incidents"),
    "folio_start": (341, "int", "incidents"),
    "default_sla_minutes": (20, "int", "incidents"),

    # Policy
    "sla_risk_minutes": (3, "int", "policy"),
    "sla_escalation_ratio": (0.7, "float", "policy"),
    "override_min_length": (10, "int", "policy"),

    # Session / logging
    "session_secret": ("cad-core-session-key", "string", "general"),
    "log_level": ("INFO", "string", "general"),
}


class CADConfig:
    """
    Configuration for one CAD core session.

    Values start from DEFAULT_CONFIG, are overlaid by CAD_<KEY> environment
    variables, and finally by explicit keyword overrides.
    """

    def __init__(self, **overrides):
        self._values: Dict[str, Any] = {}
        for key, (default, vtype, _category) in DEFAULT_CONFIG.items():
            raw = os.environ.get(f"CAD_{key.upper()}")
            self._values[key] = self._cast_value(raw, vtype) if raw is not None else default

        for key, value in overrides.items():
            if key not in DEFAULT_CONFIG:
                raise KeyError(f"Unknown config key: {key}")
            self._values[key] = value

    @staticmethod
    def _cast_value(value: str, value_type: str) -> Any:
        """Cast an environment string to the declared type."""
        if value_type == "bool":
            return value.strip().lower() in ("true", "1", "yes", "on")
        if value_type == "int":
            return int(value)
        if value_type == "float":
            return float(value)
        if value_type == "json":
            return json.loads(value)
        return value

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def __getattr__(self, key: str) -> Any:
        values = self.__dict__.get("_values", {})
        if key in values:
            return values[key]
        raise AttributeError(key)

    def by_category(self) -> Dict[str, Dict[str, Any]]:
        """Group current values by category (admin display)."""
        out: Dict[str, Dict[str, Any]] = {}
        for key, (_default, _vtype, category) in DEFAULT_CONFIG.items():
            if key == "session_secret":
                continue
            out.setdefault(category, {})[key] = self._values[key]
        return out

    @property
    def incident_types(self) -> List[str]:
        return list(INCIDENT_TYPES)

    @property
    def sectors(self) -> List[str]:
        return list(SECTORS)
