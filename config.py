from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

USER_CONFIG_PATH = Path.home() / ".port_tracker_config.yaml"
TOKEN_ENV_VARS = ("PORT_TRACKER_GITHUB_TOKEN", "GITHUB_TOKEN")
DEFAULT_CACHE_PATH = Path(".port_tracker") / "pr_cache.json"
DEFAULT_LIMIT = 10

_TRUTHY = {"1", "true", "yes", "on"}


class ConfigError(RuntimeError):
    pass


class MissingTokenError(ConfigError):
    pass


def _load_config() -> Dict[str, Any]:
    if not USER_CONFIG_PATH.exists():
        return {}
    try:
        data = yaml.safe_load(USER_CONFIG_PATH.read_text()) or {}
    except (yaml.YAMLError, OSError):
        return {}
    return data if isinstance(data, dict) else {}


def _save_config(data: Dict[str, Any]) -> None:
    if not data:
        if USER_CONFIG_PATH.exists():
            USER_CONFIG_PATH.unlink()
        return
    USER_CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
    USER_CONFIG_PATH.write_text(yaml.safe_dump(data, allow_unicode=True), encoding="utf-8")


def get_user_token(environ: Optional[Mapping[str, str]] = None) -> str:
    env = os.environ if environ is None else environ
    for name in TOKEN_ENV_VARS:
        value = (env.get(name) or "").strip()
        if value:
            return value
    return str(_load_config().get("token") or "").strip()


def set_user_token(value: str) -> None:
    data = _load_config()
    value = (value or "").strip()
    if value:
        data["token"] = value
    else:
        data.pop("token", None)
    _save_config(data)


def require_token(environ: Optional[Mapping[str, str]] = None) -> str:
    # Scopes: repo, project, read:org, read:user
    token = get_user_token(environ)
    if not token:
        raise MissingTokenError(
            f"GitHub token missing: set {' or '.join(TOKEN_ENV_VARS)} or 'token' in {USER_CONFIG_PATH}"
        )
    return token


@dataclass(frozen=True)
class RunOptions:
    dry_run: bool = False
    limit: Optional[int] = DEFAULT_LIMIT
    cache_path: Path = DEFAULT_CACHE_PATH


def load_run_options(environ: Optional[Mapping[str, str]] = None) -> RunOptions:
    """Read DRY_RUN, LIMIT and PORT_TRACKER_CACHE_PATH once per run."""
    env = os.environ if environ is None else environ
    dry_run = (env.get("DRY_RUN") or "").strip().lower() in _TRUTHY
    raw_limit = (env.get("LIMIT") or "").strip()
    limit: Optional[int] = DEFAULT_LIMIT
    if raw_limit:
        try:
            limit = int(raw_limit)
        except ValueError as exc:
            raise ConfigError(f"LIMIT must be an integer, got {raw_limit!r}") from exc
        if limit < 0:
            raise ConfigError(f"LIMIT must not be negative, got {limit}")
    cache_path = Path(env.get("PORT_TRACKER_CACHE_PATH") or DEFAULT_CACHE_PATH)
    return RunOptions(dry_run=dry_run, limit=limit, cache_path=cache_path)
