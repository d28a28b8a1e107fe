# pedaru/__init__.py
"""
Pedaru - PDF text overlay and selection context core

Reconstructs a selectable text overlay on top of rendered PDF pages and turns
on-screen selections into bounded context windows for translation/explanation.
"""

from pathlib import Path


def _get_version() -> str:
    """
    Read the version from pyproject.toml so that a source checkout always
    reports the declared version.

    Returns:
        str: version string (e.g. "0.1.0")
    """
    try:
        import tomllib  # Python 3.11+ standard library

        pyproject_path = Path(__file__).parent.parent / "pyproject.toml"
        if pyproject_path.exists():
            with open(pyproject_path, "rb") as f:
                data = tomllib.load(f)
            return data.get("project", {}).get("version", "0.0.0")
    except (ImportError, OSError, ValueError):
        pass

    # Fallback for installs without the source tree
    return "0.1.0"


__version__ = _get_version()
__app_name__ = "Pedaru"
