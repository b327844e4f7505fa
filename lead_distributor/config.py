"""Configuration helpers for the lead distribution workspace."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence

import yaml

from .errors import PermissionDeniedError

LOGGER = logging.getLogger(__name__)

DATA_PATH_ENV = "DATA_PATH"
USERS_ENV = "USERS"
MANAGER_ROLE = "Manager"


class ConfigurationError(RuntimeError):
    """Raised when configuration files are missing or malformed."""


_SUPPORTED_EXTENSIONS = {".json", ".yaml", ".yml"}


def load_configuration(path: str | Path) -> Dict[str, Any]:
    """Load configuration data from a JSON or YAML file."""

    file_path = Path(path)
    if not file_path.exists():
        raise ConfigurationError(f"Configuration file '{file_path}' was not found")

    if file_path.suffix.lower() not in _SUPPORTED_EXTENSIONS:
        raise ConfigurationError(
            f"Unsupported configuration format '{file_path.suffix}'. Supported extensions: {sorted(_SUPPORTED_EXTENSIONS)}"
        )

    text = file_path.read_text(encoding="utf-8")
    try:
        if file_path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Configuration file '{file_path}' could not be parsed: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file '{file_path}' must contain a mapping")
    return data


# --- Accounts ---

@dataclass(frozen=True)
class UserAccount:
    username: str
    name: str
    role: str


class UserDirectory:
    """Immutable set of known users, loaded once at startup."""

    def __init__(self, accounts: Iterable[UserAccount] = ()) -> None:
        self._accounts: Dict[str, UserAccount] = {account.username.lower(): account for account in accounts}

    @classmethod
    def from_records(cls, records: Optional[Sequence[Mapping[str, Any]]]) -> "UserDirectory":
        if records is not None and not isinstance(records, (list, tuple)):
            raise ConfigurationError("Users must be given as a list of mappings")
        accounts = []
        for record in records or []:
            if not isinstance(record, Mapping):
                raise ConfigurationError(f"Invalid user entry: {record!r}")
            username = str(record.get("username") or "").strip()
            if not username:
                raise ConfigurationError("User entries require a 'username'")
            accounts.append(
                UserAccount(
                    username=username,
                    name=str(record.get("name") or username).strip(),
                    role=str(record.get("role") or "").strip(),
                )
            )
        return cls(accounts)

    def __len__(self) -> int:
        return len(self._accounts)

    def __iter__(self):
        return iter(self._accounts.values())

    def get(self, username: str) -> Optional[UserAccount]:
        return self._accounts.get(username.strip().lower())

    def require_role(self, username: str, roles: Sequence[str]) -> UserAccount:
        account = self.get(username)
        if account is None:
            raise PermissionDeniedError(f"Unknown user '{username}'")
        if account.role not in roles:
            raise PermissionDeniedError(f"Role required: {' or '.join(roles)}")
        return account


# --- Settings ---

@dataclass(frozen=True)
class Settings:
    """Workspace layout and engine options passed explicitly to the service."""

    data_path: Path = Path("data")
    main_dir: str = "Main"
    tracking_dir: str = "Tracking"
    raw_dir: str = "RawData"
    historical_dir: str = "Historical"
    master_file_name: str = "Datos.xlsx"
    use_lock: bool = False
    lock_timeout: float = 30.0
    concurrent: bool = False
    max_workers: Optional[int] = None
    users: UserDirectory = field(default_factory=UserDirectory, compare=False)

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "Settings":
        workspace = dict(config.get("workspace") or {})
        sync = dict(config.get("sync") or {})
        max_workers = sync.get("max_workers")
        return cls(
            data_path=Path(workspace.get("data_path", "data")).expanduser(),
            main_dir=workspace.get("main_dir", "Main"),
            tracking_dir=workspace.get("tracking_dir", "Tracking"),
            raw_dir=workspace.get("raw_dir", "RawData"),
            historical_dir=workspace.get("historical_dir", "Historical"),
            master_file_name=workspace.get("master_file_name", "Datos.xlsx"),
            use_lock=bool(sync.get("use_lock", False)),
            lock_timeout=float(sync.get("lock_timeout", 30.0)),
            concurrent=bool(sync.get("concurrent", False)),
            max_workers=int(max_workers) if max_workers else None,
            users=UserDirectory.from_records(config.get("users")),
        )


def load_settings(path: str | Path | None = None, *, environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build :class:`Settings` from an optional file and the environment.

    ``DATA_PATH`` overrides the configured data directory and ``USERS`` (a
    JSON list) replaces the configured user list.
    """

    environ = os.environ if environ is None else environ
    config = load_configuration(path) if path else {}
    settings = Settings.from_mapping(config)

    data_path = environ.get(DATA_PATH_ENV)
    if data_path:
        settings = replace(settings, data_path=Path(data_path).expanduser())

    users_json = environ.get(USERS_ENV)
    if users_json:
        try:
            records = json.loads(users_json)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"{USERS_ENV} must be a JSON list of users: {exc}") from exc
        settings = replace(settings, users=UserDirectory.from_records(records))

    LOGGER.debug("Loaded settings for data path %s with %s users", settings.data_path, len(settings.users))
    return settings


__all__ = [
    "ConfigurationError",
    "MANAGER_ROLE",
    "Settings",
    "UserAccount",
    "UserDirectory",
    "load_configuration",
    "load_settings",
]
