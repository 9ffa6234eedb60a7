"""Secret stores for user credentials and generated client secrets."""
from __future__ import annotations
import logging
import threading
from pathlib import Path
from typing import Dict, Optional, Protocol, Tuple

from ..core.keycloak.dto import UserSpec
from ..core.keycloak.exceptions import ValidationError


class SecretStore(Protocol):
    def get(self, name: str, key: str) -> str:
        ...

    def put(self, name: str, key: str, value: str) -> None:
        ...


class FileSecretStore:
    """Secrets laid out as ``<root>/<secret name>/<key>`` files (mounted secret volumes)."""

    def __init__(self, root: str | Path = "/run/secrets", logger: Optional[logging.Logger] = None):
        self.root = Path(root)
        self.log = logger or logging.getLogger(__name__)

    def get(self, name: str, key: str) -> str:
        """Return the secret value.

        Raises:
            ValidationError: If the secret or the key does not exist
        """
        secret_dir = self.root / name
        if not secret_dir.is_dir():
            raise ValidationError(f"secret '{name}' not found")
        path = secret_dir / key
        if not path.is_file():
            raise ValidationError(f"key '{key}' not found in secret '{name}'")
        return path.read_text().strip()

    def put(self, name: str, key: str, value: str) -> None:
        secret_dir = self.root / name
        secret_dir.mkdir(parents=True, exist_ok=True)
        (secret_dir / key).write_text(value)
        self.log.info("Secret %s/%s written", name, key)


class InMemorySecretStore:
    def __init__(self, data: Optional[Dict[str, Dict[str, str]]] = None):
        self._lock = threading.Lock()
        self._data: Dict[Tuple[str, str], str] = {}
        for name, keys in (data or {}).items():
            for key, value in keys.items():
                self._data[(name, key)] = value
        self._names = set(data or {})

    def get(self, name: str, key: str) -> str:
        with self._lock:
            if name not in self._names:
                raise ValidationError(f"secret '{name}' not found")
            try:
                return self._data[(name, key)]
            except KeyError:
                raise ValidationError(f"key '{key}' not found in secret '{name}'") from None

    def put(self, name: str, key: str, value: str) -> None:
        with self._lock:
            self._names.add(name)
            self._data[(name, key)] = value


def resolve_user_password(user: UserSpec, secrets: SecretStore) -> Optional[str]:
    """Pick the credential for ``user``.

    A secret reference wins and must resolve; otherwise the plaintext password
    is used; with neither the password is left unmanaged (None).

    Raises:
        ValidationError: If the referenced secret or key is missing
    """
    ref = user.password_secret
    if ref.name:
        return secrets.get(ref.name, ref.key)
    if user.password:
        return user.password
    return None
