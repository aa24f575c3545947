"""
Microsoft Graph sign-in for the technician's calendar (MSAL device code flow).

The serialized MSAL token cache is kept in the OS keyring when one is
available, otherwise in a file readable only by the owner.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import keyring
import msal
from keyring.errors import KeyringError
from rich.console import Console

from ..domain.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

console = Console()

KEYRING_SERVICE_NAME = "glisten"
DEFAULT_CACHE_FILE = Path.home() / ".glisten_token_cache.json"


class TokenCacheStore:
    """Loads and saves the serialized token cache, keyring first."""

    def __init__(self, key: str, cache_file: Path):
        self.key = key
        self.cache_file = cache_file
        self.backend = "keyring"

    def load(self) -> Optional[str]:
        if self.backend == "keyring":
            try:
                serialized = keyring.get_password(KEYRING_SERVICE_NAME, self.key)
            except KeyringError as exc:  # pragma: no cover - environment dependent
                self._fall_back(f"reading credentials failed: {exc}")
            else:
                if serialized is not None:
                    return serialized

        if self.cache_file.exists():
            try:
                return self.cache_file.read_text(encoding="utf-8")
            except OSError as exc:
                logger.warning("Could not load token cache file %s: %s", self.cache_file, exc)
        return None

    def save(self, serialized: str) -> None:
        if self.backend == "keyring":
            try:
                keyring.set_password(KEYRING_SERVICE_NAME, self.key, serialized)
                return
            except KeyringError as exc:  # pragma: no cover - environment dependent
                self._fall_back(f"writing credentials failed: {exc}")

        try:
            self.cache_file.parent.mkdir(parents=True, exist_ok=True)
            self.cache_file.write_text(serialized, encoding="utf-8")
            self.cache_file.chmod(0o600)
        except OSError as exc:
            logger.warning("Could not save token cache to %s: %s", self.cache_file, exc)

    def clear(self) -> None:
        if self.cache_file.exists():
            self.cache_file.unlink()
        try:
            keyring.delete_password(KEYRING_SERVICE_NAME, self.key)
        except KeyringError as exc:  # pragma: no cover - environment dependent
            logger.debug("Nothing removed from keyring: %s", exc)

    def _fall_back(self, reason: str) -> None:
        logger.warning(
            "Secure credential storage unavailable (%s). Falling back to %s.",
            reason,
            self.cache_file,
        )
        self.backend = "file"


def token_cache_store(client_id: str, tenant_id: str, cache_file: Path | None = None) -> TokenCacheStore:
    """Cache store for one app registration and tenant."""
    return TokenCacheStore(key=f"{client_id}:{tenant_id}", cache_file=cache_file or DEFAULT_CACHE_FILE)


class GraphAuthenticator:
    """
    Acquires a Graph access token with calendar read scope.

    Tokens are refreshed silently from the cache; the device code flow is
    only started when no usable account is cached.
    """

    SCOPES = ["Calendars.Read"]

    def __init__(
        self,
        client_id: str,
        tenant_id: str,
        authority_url: str | None = None,
        cache_file: Path | None = None,
    ):
        self.client_id = client_id
        self.tenant_id = tenant_id
        self.authority = authority_url or f"https://login.microsoftonline.com/{tenant_id}"

        self.store = token_cache_store(client_id, tenant_id, cache_file)
        self.cache = msal.SerializableTokenCache()
        serialized = self.store.load()
        if serialized:
            try:
                self.cache.deserialize(serialized)
            except ValueError as exc:
                logger.warning("Could not deserialize token cache: %s", exc)

        self.app = msal.PublicClientApplication(
            client_id=self.client_id,
            authority=self.authority,
            token_cache=self.cache,
        )

    @property
    def cache_backend(self) -> str:
        return self.store.backend

    def get_access_token(self, force_refresh: bool = False) -> str:
        """
        Return a valid access token, signing in interactively if needed.

        Raises:
            AuthenticationError: If authentication fails
        """
        if not force_refresh:
            accounts = self.app.get_accounts()
            if accounts:
                result = self.app.acquire_token_silent(scopes=self.SCOPES, account=accounts[0])
                if result and "access_token" in result:
                    self._persist()
                    return result["access_token"]

        return self._authenticate_device_code_flow()

    def _authenticate_device_code_flow(self) -> str:
        try:
            flow = self.app.initiate_device_flow(scopes=self.SCOPES)
        except Exception as exc:  # pragma: no cover - MSAL internal failure
            raise AuthenticationError(f"Failed to initiate device flow: {exc}") from exc

        if "user_code" not in flow:
            raise AuthenticationError(
                f"Failed to initiate device flow: {flow.get('error_description', 'Unknown error')}"
            )

        console.print("\n[bold cyan]🔐 Calendar sign-in required[/bold cyan]")
        console.print(f"1. Open [bold cyan]{flow['verification_uri']}[/bold cyan]")
        console.print(f"2. Enter the code [bold yellow]{flow['user_code']}[/bold yellow]")
        console.print("3. Sign in with the technician's Microsoft account\n")
        console.print("[dim]Waiting for authentication...[/dim]\n")

        result = self.app.acquire_token_by_device_flow(flow)
        if "access_token" not in result:
            raise AuthenticationError(
                f"Authentication failed: {result.get('error_description', 'Unknown error')}"
            )

        console.print("[bold green]✓ Authentication successful![/bold green]\n")
        self._persist()
        return result["access_token"]

    def _persist(self) -> None:
        if self.cache.has_state_changed:
            self.store.save(self.cache.serialize())
