import json
from pathlib import Path
from typing import Any, Optional


class SecretsManager:
    """Load client secrets from a JSON file such as ``sandbox.cfg``.

    The file is read lazily and cached on first access. A missing file is
    treated as empty so callers can report which keys are absent. Tests may
    replace the in-memory cache via :meth:`set_override`.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._cache: dict[str, Any] | None = None

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, Any]:
        if self._cache is None:
            try:
                with self._path.open("r", encoding="utf-8") as fh:
                    data = json.load(fh)
            except FileNotFoundError:
                data = {}
            if not isinstance(data, dict):
                raise ValueError(f"{self._path} must contain a JSON object")
            self._cache = data
        return self._cache

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        """Return secret value for *key* or *default* if missing."""

        return self._load().get(key, default)

    def set_override(self, data: dict[str, Any]) -> None:
        """Replace the entire secret cache (test helper)."""

        self._cache = dict(data)
