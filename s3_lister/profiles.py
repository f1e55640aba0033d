from __future__ import annotations
"""Saved connection profiles whose secrets live in the OS keychain."""
from dataclasses import dataclass
import json
import logging
from pathlib import Path

import keyring
from keyring.errors import KeyringError

LOGGER = logging.getLogger(__name__)


class ProfileNotFoundError(KeyError):
    """Raised when a named profile is not saved."""


@dataclass
class ConnectionProfile:
    """Endpoint and credentials for one store account."""

    name: str
    endpoint_url: str = ""
    access_key: str = ""
    secret_key: str = ""
    region: str = ""

    def public_fields(self) -> dict[str, str]:
        return {
            "name": self.name,
            "endpoint_url": self.endpoint_url,
            "access_key": self.access_key,
            "region": self.region,
        }


class KeychainStore:
    """Reads and writes profile secrets through :mod:`keyring`."""

    def __init__(self, service_name: str = "s3lister"):
        self._service_name = service_name

    def get_secret(self, profile_name: str) -> str:
        if not profile_name:
            return ""
        try:
            return keyring.get_password(self._service_name, profile_name) or ""
        except KeyringError as exc:
            LOGGER.warning("Keychain lookup for profile '%s' failed: %s", profile_name, exc)
            return ""

    def set_secret(self, profile_name: str, secret_key: str) -> None:
        if not profile_name or not secret_key:
            return
        try:
            keyring.set_password(self._service_name, profile_name, secret_key)
        except KeyringError as exc:
            LOGGER.warning("Keychain update for profile '%s' failed: %s", profile_name, exc)


class ProfileStorage:
    """JSON file of profiles, with secrets kept out of the file."""

    def __init__(self, storage_path: str | Path | None = None, keychain: KeychainStore | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".s3lister_connections.json"
        self._path = Path(storage_path)
        self._keychain = keychain or KeychainStore()

    def load(self) -> list[ConnectionProfile]:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return []
        if not isinstance(data, list):
            return []

        profiles: list[ConnectionProfile] = []
        migrated = False
        for entry in data:
            if not isinstance(entry, dict) or not entry.get("name"):
                continue
            name = str(entry["name"])
            secret_key = entry.get("secret_key") or ""
            if secret_key:
                # Plaintext secret from an older file: move it to the keychain.
                self._keychain.set_secret(name, secret_key)
                migrated = True
            else:
                secret_key = self._keychain.get_secret(name)
            profiles.append(
                ConnectionProfile(
                    name=name,
                    endpoint_url=str(entry.get("endpoint_url") or ""),
                    access_key=str(entry.get("access_key") or ""),
                    secret_key=secret_key,
                    region=str(entry.get("region") or ""),
                )
            )
        if migrated:
            self._write([profile.public_fields() for profile in profiles])
        return profiles

    def get(self, name: str) -> ConnectionProfile:
        for profile in self.load():
            if profile.name == name:
                return profile
        raise ProfileNotFoundError(f"Profile '{name}' does not exist")

    def save(self, profile: ConnectionProfile) -> None:
        """Insert or replace ``profile``, storing its secret in the keychain."""

        profiles = [existing for existing in self.load() if existing.name != profile.name]
        profiles.append(profile)
        self._keychain.set_secret(profile.name, profile.secret_key)
        self._write([existing.public_fields() for existing in profiles])

    def _write(self, data: list[dict[str, str]]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        except OSError as exc:
            LOGGER.warning("Unable to write profiles to %s: %s", self._path, exc)
