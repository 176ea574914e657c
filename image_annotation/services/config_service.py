"""
Configuration service for the image annotation core.

This module handles loading, saving, and managing the default drawing
settings a controller starts with. Configuration is stored as JSON in
~/.config/image-annotation/config.json following the XDG Base Directory
Specification.
"""

import copy
import json
from pathlib import Path
from typing import Any, Dict, Optional

from PySide6.QtGui import QColor

from image_annotation.editor.annotations import AnnotationType
from image_annotation.services.logging_service import get_logger

# Default configuration directory following XDG Base Directory Specification
DEFAULT_CONFIG_DIR = Path.home() / ".config" / "image-annotation"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.json"

# Default configuration values
DEFAULT_CONFIG: Dict[str, Any] = {
    # Annotation type selected when the controller is created
    "annotation_type": "line",
    # Colour for new annotations, as a Qt colour name (#AARRGGBB)
    "color": "#ffff0000",
    # Stroke width in render pixels for shapes
    "stroke_width": 2.0,
    # Font size in original-image pixels for text annotations
    "font_size": 16.0,
    # Maximum number of annotations, null means unlimited
    "annotation_limit": None,
    # Lock single-drag shapes as soon as the drag ends
    "finalize_on_release": False,
}


class ConfigService:
    """
    Service for managing the annotation defaults.

    Handles loading, saving, and accessing configuration values.
    Provides sensible defaults when config file is missing or corrupted.
    """

    def __init__(self, config_path: Optional[Path] = None) -> None:
        """
        Initialize the ConfigService.

        Args:
            config_path: Optional path to config file. Defaults to
                        ~/.config/image-annotation/config.json
        """
        self._logger = get_logger(__name__)
        self._config_path = Path(config_path) if config_path else DEFAULT_CONFIG_FILE
        self._config: Dict[str, Any] = {}

        self._load()

    @property
    def config_path(self) -> Path:
        return self._config_path

    def _load(self) -> None:
        """Load configuration from file, using defaults if needed."""
        self._config = copy.deepcopy(DEFAULT_CONFIG)

        if not self._config_path.exists():
            self._logger.info(
                f"Config file not found at {self._config_path}. Using defaults."
            )
            self._save_to_file()
            return

        try:
            with open(self._config_path, "r", encoding="utf-8") as f:
                loaded_config = json.load(f)

            if isinstance(loaded_config, dict):
                self._deep_merge(self._config, loaded_config)
                self._logger.info(f"Configuration loaded from {self._config_path}")
                # Persist any new default keys
                self._save_to_file()
            else:
                raise ValueError("Config file does not contain a valid JSON object")

        except (json.JSONDecodeError, ValueError) as e:
            self._logger.warning(
                f"Config file corrupted or invalid: {e}. Recreating with defaults."
            )
            self._config = copy.deepcopy(DEFAULT_CONFIG)
            self._save_to_file()

        except (OSError, PermissionError) as e:
            self._logger.warning(
                f"Could not read config file: {e}. Using defaults."
            )

    def _deep_merge(self, base: Dict, override: Dict) -> None:
        """Recursively merge override dict into base dict."""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def _save_to_file(self) -> None:
        """Save current configuration to file."""
        try:
            self._config_path.parent.mkdir(parents=True, exist_ok=True)

            with open(self._config_path, "w", encoding="utf-8") as f:
                json.dump(self._config, f, indent=2)

            self._logger.debug(f"Configuration saved to {self._config_path}")

        except (OSError, PermissionError) as e:
            self._logger.error(f"Could not save config file: {e}")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Args:
            key: The configuration key to retrieve.
            default: Default value if key doesn't exist.

        Returns:
            The configuration value, or default if not found.
        """
        return self._config.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """
        Set a configuration value (in memory only).

        Note:
            Call save() to persist changes to disk.
        """
        self._config[key] = value
        self._logger.debug(f"Config key '{key}' set to '{value}'")

    def save(self) -> None:
        """Persist current configuration to disk."""
        self._save_to_file()

    # ─── Drawing Settings ─────────────────────────────────────────────────

    @property
    def annotation_type(self) -> AnnotationType:
        """Get the initial annotation type."""
        name = str(self.get("annotation_type", DEFAULT_CONFIG["annotation_type"]))
        try:
            return AnnotationType[name.upper()]
        except KeyError:
            self._logger.warning(
                f"Unknown annotation type '{name}' in config. Using default."
            )
            return AnnotationType[DEFAULT_CONFIG["annotation_type"].upper()]

    @property
    def color(self) -> QColor:
        """Get the initial annotation colour."""
        color = QColor(str(self.get("color", DEFAULT_CONFIG["color"])))
        if not color.isValid():
            self._logger.warning(
                f"Invalid colour '{self.get('color')}' in config. Using default."
            )
            return QColor(DEFAULT_CONFIG["color"])
        return color

    def _positive_float(self, key: str) -> float:
        """Read a size that must be a number greater than 0."""
        value = self.get(key, DEFAULT_CONFIG[key])
        try:
            number = float(value)
        except (TypeError, ValueError):
            number = 0.0
        if not number > 0:
            self._logger.warning(
                f"Invalid {key} '{value}' in config. Using default."
            )
            return float(DEFAULT_CONFIG[key])
        return number

    @property
    def stroke_width(self) -> float:
        """Get the initial stroke width."""
        return self._positive_float("stroke_width")

    @property
    def font_size(self) -> float:
        """Get the initial font size for text annotations."""
        return self._positive_float("font_size")

    @property
    def annotation_limit(self) -> Optional[int]:
        """Get the annotation limit, or None for unlimited."""
        limit = self.get("annotation_limit")
        if limit is None:
            return None
        try:
            value = int(limit)
        except (TypeError, ValueError):
            value = 0
        if value <= 0:
            self._logger.warning(
                f"Invalid annotation_limit '{limit}' in config. Using no limit."
            )
            return None
        return value

    @property
    def finalize_on_release(self) -> bool:
        """Get the finalize-on-release policy."""
        return bool(self.get("finalize_on_release", False))
