"""
Runtime options and secret loading for sovereign adapters.

Mock mode is an explicit :class:`RuntimeOptions` value handed to each adapter
at construction. The environment is consulted only by
:meth:`RuntimeOptions.from_env`, so adapters never read process state on the
fetch path.

Secrets are loaded from ``.secrets/secret.toml`` by default. The lookup order is:

1. Explicit ``SOVEREIGN_SECRETS_PATH`` environment variable.
2. ``.secrets/secret.toml`` then ``.secrets/secrets.toml`` relative to the CWD.
3. The same two files relative to the project root (the directory holding
   ``pyproject.toml``).

Adapter keys live under ``[adapters.<adapter_id>]``::

    [adapters.binance]
    api_key = "..."
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional

from .core.logging import coerce_bool

USE_MOCKS_ENV = "SOVEREIGN_USE_MOCKS"
LEGACY_USE_MOCKS_ENV = "USE_MOCKS"
SECRETS_PATH_ENV = "SOVEREIGN_SECRETS_PATH"


@dataclass(slots=True, frozen=True)
class RuntimeOptions:
    """
    Process-level switches threaded through adapter construction.

    Attributes
    ----------
    use_mocks:
        Force every adapter built with these options onto its mock path,
        regardless of the per-adapter ``use_mocks`` flag.
    """

    use_mocks: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RuntimeOptions":
        env = os.environ if environ is None else environ
        raw = env.get(USE_MOCKS_ENV)
        if raw is None:
            raw = env.get(LEGACY_USE_MOCKS_ENV)
        return cls(use_mocks=bool(raw) and coerce_bool(raw) is True)


@dataclass(slots=True)
class SecretsBundle:
    """Lightweight container for parsed secret values."""

    source_path: Optional[Path]
    data: Dict[str, object] = field(default_factory=dict)

    def adapter_section(self, adapter_id: str) -> Mapping[str, object]:
        adapters = self.data.get("adapters")
        if not isinstance(adapters, dict):
            return {}
        section = adapters.get(adapter_id)
        return section if isinstance(section, dict) else {}

    def api_key_for(self, adapter_id: str) -> Optional[str]:
        value = self.adapter_section(adapter_id).get("api_key")
        return value if isinstance(value, str) and value else None


def _discover_project_root() -> Optional[Path]:
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / "pyproject.toml").is_file():
            return parent
    return None


def _candidate_paths() -> Iterable[Path]:
    env_override = os.getenv(SECRETS_PATH_ENV)
    if env_override:
        yield Path(env_override).expanduser()

    search_roots = [Path.cwd()]
    project_root = _discover_project_root()
    if project_root and project_root not in search_roots:
        search_roots.append(project_root)
    for base in search_roots:
        for filename in ("secret.toml", "secrets.toml"):
            yield base / ".secrets" / filename


def load_secrets(strict: bool = False) -> SecretsBundle:
    """
    Attempt to load secrets from the configured locations.

    Parameters
    ----------
    strict:
        When ``True`` raise ``FileNotFoundError`` if no secrets file is found.
    """

    for path in _candidate_paths():
        if path.is_file():
            with path.open("rb") as handle:
                return SecretsBundle(source_path=path, data=tomllib.load(handle))

    if strict:
        raise FileNotFoundError(f"No secrets file found. Configure {SECRETS_PATH_ENV} or .secrets/secret.toml.")

    return SecretsBundle(source_path=None)
