"""
Process-wide user settings record.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Optional


def _number(value: Any, default: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return float(value)


def _flag(value: Any, default: bool) -> bool:
    return value if isinstance(value, bool) else default


def _text(value: Any, default: Optional[str]) -> Optional[str]:
    return value if isinstance(value, str) else default


@dataclass(frozen=True)
class Settings:
    """Settings persisted under the store's settings key."""
    sensitivity: float = 0.7
    min_object_size: int = 20
    enable_haptics: bool = True
    enable_sound: bool = False
    auto_save: bool = True
    theme: str = "dark"
    detector_api_key: Optional[str] = None

    @property
    def has_detector_api_key(self) -> bool:
        return bool(self.detector_api_key and self.detector_api_key.strip())

    def with_changes(self, **changes: Any) -> "Settings":
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Settings":
        """
        Adapter: Create from a stored record; unknown keys are ignored.

        A field with the wrong type (or null) falls back to its default on
        its own, so one bad value never discards the rest of the record.
        """
        defaults = cls()
        return cls(
            sensitivity=_number(d.get("sensitivity"), defaults.sensitivity),
            min_object_size=int(_number(d.get("minObjectSize"), defaults.min_object_size)),
            enable_haptics=_flag(d.get("enableHaptics"), defaults.enable_haptics),
            enable_sound=_flag(d.get("enableSound"), defaults.enable_sound),
            auto_save=_flag(d.get("autoSave"), defaults.auto_save),
            theme=_text(d.get("theme"), defaults.theme),
            detector_api_key=_text(d.get("detectorApiKey"), None),
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "sensitivity": self.sensitivity,
            "minObjectSize": self.min_object_size,
            "enableHaptics": self.enable_haptics,
            "enableSound": self.enable_sound,
            "autoSave": self.auto_save,
            "theme": self.theme,
        }
        if self.detector_api_key is not None:
            d["detectorApiKey"] = self.detector_api_key
        return d
