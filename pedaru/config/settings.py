# pedaru/config/settings.py
"""
Viewer settings management for Pedaru.

Settings file split:
- settings.template.json: developer defaults (overwritten on update)
- user_settings.json: only the keys the user changed
- On load the template is read first, then user settings override it

Caching:
- _settings_cache: ViewerSettings instances keyed by path
- load() prefers the cache and reloads when either file's mtime changes
- save() refreshes the cache entry
- invalidate_settings_cache() clears it explicitly
"""

import json
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

# Module logger
logger = logging.getLogger(__name__)

# Settings cache: path -> (mtime_template, mtime_user, ViewerSettings)
_settings_cache: dict[str, tuple[float, float, "ViewerSettings"]] = {}
_settings_cache_lock = threading.Lock()

# Keys the user can change (persisted to user_settings.json)
USER_SETTINGS_KEYS = {
    "default_scale",
    "model_id",
    "explain_by_default",
}

# Tolerant offset search deltas around the estimated selection position
DEFAULT_SEARCH_DELTAS: tuple[int, ...] = (0, -1, 1, -2, 2, -5, 5, -10, 10, -20, 20)


@dataclass
class ViewerSettings:
    """Viewer settings"""

    # Context window (characters on each side of a selection)
    context_length: int = 500
    # Offsets tried around the estimated selection index, in order
    search_deltas: tuple[int, ...] = DEFAULT_SEARCH_DELTAS
    # Marker used when a context slice is truncated
    ellipsis: str = "..."

    # Overlay width correction: skip re-applying below this change
    width_correction_epsilon: float = 0.001

    # Selection popup
    popup_margin: float = 10.0          # px to the right of the selection box
    word_max_length: int = 30           # Longer single tokens count as phrases

    # Full-text search
    search_context_length: int = 40     # Characters shown around each hit
    search_yield_every_pages: int = 5   # Publish partial results every N pages

    # Rendering
    default_scale: float = 1.5
    min_scale: float = 0.25
    max_scale: float = 5.0

    # Translation backend
    model_id: str = "gemini-2.0-flash"
    explain_by_default: bool = False

    # Extra keys seen in files but not understood (kept for diagnostics)
    _unknown_keys: list[str] = field(default_factory=list, repr=False, compare=False)

    @classmethod
    def load(cls, path: Path, use_cache: bool = True) -> "ViewerSettings":
        """Load settings from template and user settings files.

        1. Read defaults from settings.template.json
        2. Override with user_settings.json (USER_SETTINGS_KEYS only)

        Args:
            path: Base settings path (config/settings.json). Only its parent
                  directory is used to locate the two files.
            use_cache: Return the cached instance when neither file changed.
        """
        config_dir = path.parent
        template_path = config_dir / "settings.template.json"
        user_settings_path = config_dir / "user_settings.json"

        cache_key = str(path.resolve())

        template_mtime = template_path.stat().st_mtime if template_path.exists() else 0.0
        user_mtime = user_settings_path.stat().st_mtime if user_settings_path.exists() else 0.0

        if use_cache:
            with _settings_cache_lock:
                if cache_key in _settings_cache:
                    cached_template_mtime, cached_user_mtime, cached_settings = _settings_cache[cache_key]
                    if cached_template_mtime == template_mtime and cached_user_mtime == user_mtime:
                        logger.debug("Using cached settings for: %s", path)
                        return cached_settings

        data = {}

        # 1. Template (developer defaults)
        if template_path.exists():
            try:
                with open(template_path, 'r', encoding='utf-8-sig') as f:
                    data = json.load(f)
                    logger.debug("Loaded template settings from: %s", template_path)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                logger.warning("Failed to load template settings: %s", e)

        # 2. User overrides
        if user_settings_path.exists():
            try:
                with open(user_settings_path, 'r', encoding='utf-8-sig') as f:
                    user_data = json.load(f)
                    for key in USER_SETTINGS_KEYS:
                        if key in user_data:
                            data[key] = user_data[key]
                    logger.debug("Loaded user settings from: %s", user_settings_path)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                logger.warning("Failed to load user settings: %s", e)

        known_fields = {f.name for f in cls.__dataclass_fields__.values() if not f.name.startswith('_')}
        filtered_data = {k: v for k, v in data.items() if k in known_fields}
        unknown = sorted(k for k in data if k not in known_fields)
        if unknown:
            logger.debug("Ignoring unknown settings keys: %s", ", ".join(unknown))

        # JSON has no tuples
        if 'search_deltas' in filtered_data and isinstance(filtered_data['search_deltas'], list):
            filtered_data['search_deltas'] = tuple(filtered_data['search_deltas'])

        settings = cls(**filtered_data)
        settings._unknown_keys = unknown
        settings._validate()

        with _settings_cache_lock:
            _settings_cache[cache_key] = (template_mtime, user_mtime, settings)

        return settings

    def _validate(self) -> None:
        """Validate and normalize setting values.

        Invalid values are reset to defaults with a warning.
        """
        if self.context_length < 1:
            logger.warning("context_length too small (%d), resetting to 500", self.context_length)
            self.context_length = 500

        if not self.search_deltas or not all(isinstance(d, int) for d in self.search_deltas):
            logger.warning("search_deltas invalid (%r), resetting to defaults", self.search_deltas)
            self.search_deltas = DEFAULT_SEARCH_DELTAS

        if not 0.0 < self.width_correction_epsilon < 1.0:
            logger.warning(
                "width_correction_epsilon out of range (%s), resetting to 0.001",
                self.width_correction_epsilon,
            )
            self.width_correction_epsilon = 0.001

        if self.word_max_length < 1:
            self.word_max_length = 30

        if self.search_context_length < 0:
            self.search_context_length = 40

        if self.search_yield_every_pages < 1:
            self.search_yield_every_pages = 5

        if self.min_scale <= 0 or self.max_scale < self.min_scale:
            logger.warning("Scale bounds invalid (%s..%s), resetting", self.min_scale, self.max_scale)
            self.min_scale = 0.25
            self.max_scale = 5.0

        if not self.min_scale <= self.default_scale <= self.max_scale:
            logger.warning("default_scale out of range (%s), resetting to 1.5", self.default_scale)
            self.default_scale = 1.5

    def clamp_scale(self, scale: float) -> float:
        """Clamp a requested zoom factor into the configured range."""
        return max(self.min_scale, min(self.max_scale, scale))

    def save(self, path: Path) -> None:
        """Save user-changeable settings to user_settings.json.

        settings.template.json is never modified. The cache is refreshed
        after writing.

        Args:
            path: Base settings path (config/settings.json)
        """
        config_dir = path.parent
        user_settings_path = config_dir / "user_settings.json"
        template_path = config_dir / "settings.template.json"

        config_dir.mkdir(parents=True, exist_ok=True)

        data = {}
        for key in sorted(USER_SETTINGS_KEYS):
            if hasattr(self, key):
                data[key] = getattr(self, key)

        with open(user_settings_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

        logger.debug("Saved user settings to: %s", user_settings_path)

        cache_key = str(path.resolve())
        template_mtime = template_path.stat().st_mtime if template_path.exists() else 0.0
        user_mtime = user_settings_path.stat().st_mtime if user_settings_path.exists() else 0.0
        with _settings_cache_lock:
            _settings_cache[cache_key] = (template_mtime, user_mtime, self)


def get_default_settings_path() -> Path:
    """Get default settings file path"""
    return Path(__file__).parent.parent.parent / "config" / "settings.json"


def invalidate_settings_cache(path: Optional[Path] = None) -> None:
    """Invalidate settings cache.

    Args:
        path: Clear only this path's entry. None clears everything.
    """
    with _settings_cache_lock:
        if path is None:
            _settings_cache.clear()
            logger.debug("Cleared all settings cache")
        else:
            cache_key = str(path.resolve())
            if cache_key in _settings_cache:
                del _settings_cache[cache_key]
                logger.debug("Cleared settings cache for: %s", path)
