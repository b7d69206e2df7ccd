"""
Sign-in to Microsoft Graph with MSAL's device code flow.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import msal
from rich.console import Console

from ..domain.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

console = Console()

DEFAULT_CACHE_FILE = Path.home() / ".meetslot_token_cache.json"


class TokenCacheFile:
    """MSAL token cache persisted as a user-only readable JSON file."""

    def __init__(self, path: Path):
        self.path = path
        self.cache = msal.SerializableTokenCache()

        if path.exists():
            try:
                self.cache.deserialize(path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as exc:
                logger.warning("Ignoring unreadable token cache %s: %s", path, exc)

    def persist(self) -> None:
        if not self.cache.has_state_changed:
            return

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(self.cache.serialize(), encoding="utf-8")
            self.path.chmod(0o600)
        except OSError as exc:
            logger.warning("Could not write token cache %s: %s", self.path, exc)

    def remove(self) -> None:
        if self.path.exists():
            self.path.unlink()
        self.cache = msal.SerializableTokenCache()


class GraphAuthenticator:
    """
    Obtains delegated Graph tokens for reading and booking calendar events.

    Tokens are refreshed silently from the cache file when possible; otherwise
    the user is asked to complete a device code sign-in in the browser.
    """

    # Booking writes events into every participant's calendar
    SCOPES = ["Calendars.ReadWrite.Shared", "User.ReadBasic.All"]

    def __init__(
        self,
        client_id: str,
        tenant_id: str,
        authority_url: Optional[str] = None,
        cache_file: Optional[Path] = None,
    ):
        self.client_id = client_id
        self.tenant_id = tenant_id
        self.authority = authority_url or f"https://login.microsoftonline.com/{tenant_id}"
        self.token_cache = TokenCacheFile(cache_file or DEFAULT_CACHE_FILE)
        self.app = self._build_app()

    def _build_app(self) -> msal.PublicClientApplication:
        return msal.PublicClientApplication(
            client_id=self.client_id,
            authority=self.authority,
            token_cache=self.token_cache.cache,
        )

    def get_access_token(self, force_refresh: bool = False) -> str:
        """
        Return a bearer token for Microsoft Graph.

        Args:
            force_refresh: Skip the cached account and sign in interactively

        Raises:
            AuthenticationError: If the sign-in fails
        """
        result = None if force_refresh else self._acquire_silently()
        if result is None:
            result = self._acquire_with_device_code()

        self.token_cache.persist()
        return result["access_token"]

    def clear_cache(self) -> None:
        """Forget cached accounts so the next call signs in again."""
        self.token_cache.remove()
        self.app = self._build_app()
        logger.info("Removed Graph token cache %s", self.token_cache.path)

    def _acquire_silently(self) -> Optional[Dict[str, Any]]:
        accounts = self.app.get_accounts()
        if not accounts:
            return None

        result = self.app.acquire_token_silent(scopes=self.SCOPES, account=accounts[0])
        if result and "access_token" in result:
            logger.debug("Reused cached Graph token for %s", accounts[0].get("username"))
            return result
        return None

    def _acquire_with_device_code(self) -> Dict[str, Any]:
        flow = self.app.initiate_device_flow(scopes=self.SCOPES)
        if "user_code" not in flow:
            raise AuthenticationError(
                f"Could not start device code sign-in: {flow.get('error_description', 'unknown error')}"
            )

        console.print(
            f"\n[bold cyan]Sign in to Microsoft Graph:[/bold cyan] open "
            f"[bold]{flow['verification_uri']}[/bold] and enter "
            f"[bold yellow]{flow['user_code']}[/bold yellow]\n"
        )

        result = self.app.acquire_token_by_device_flow(flow)
        if "access_token" not in result:
            raise AuthenticationError(
                f"Sign-in failed: {result.get('error_description', 'unknown error')}"
            )

        logger.info("Signed in to Microsoft Graph for tenant %s", self.tenant_id)
        return result
