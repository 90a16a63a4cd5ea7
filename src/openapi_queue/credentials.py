"""
Thread-safe in-memory registry of brokerage API credentials.

Each registered credential is one "slot": an independent rate-limited request
stream. The consumer asks ``get_credential_slots()`` for the usable slots on
every pass, so credentials can be added or removed at runtime.
"""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import httpx

from openapi_queue.config import QueueSettings

logger = logging.getLogger(__name__)

# Access tokens are valid for 24h unless the issuer says otherwise.
_DEFAULT_TOKEN_LIFETIME_S = 86400


@dataclass
class Credential:
    """One app key / app secret pair plus its cached access token."""

    app_key: str
    app_secret: str
    name: str = ""
    access_token: Optional[str] = None
    token_expires_at: float = 0.0

    def is_token_valid(self, now: Optional[float] = None) -> bool:
        now = now or time.time()
        return bool(self.access_token) and self.token_expires_at > now

    def auth_headers(self) -> Dict[str, str]:
        return {
            "authorization": f"Bearer {self.access_token}",
            "appkey": self.app_key,
            "appsecret": self.app_secret,
        }

    def __repr__(self) -> str:
        # never leak the secret or token into logs
        return f"Credential(name={self.name!r}, app_key={self.app_key[:4]}…, token_valid={self.is_token_valid()})"


class TokenIssuer:
    """
    Issues access tokens through the brokerage OAuth endpoint.

    ``issue`` returns ``(access_token, expires_at)`` where ``expires_at`` is a
    unix timestamp already reduced by ``refresh_margin_s`` so tokens are renewed
    before the server stops accepting them.
    """

    TOKEN_PATH = "/oauth2/tokenP"

    def __init__(
        self,
        base_url: str,
        refresh_margin_s: float = 600.0,
        timeout_s: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.refresh_margin_s = refresh_margin_s
        self.timeout_s = timeout_s
        self._http_client = http_client

    async def issue(self, credential: Credential) -> Tuple[str, float]:
        payload = {
            "grant_type": "client_credentials",
            "appkey": credential.app_key,
            "appsecret": credential.app_secret,
        }
        url = self.base_url + self.TOKEN_PATH

        if self._http_client is not None:
            response = await self._http_client.post(url, json=payload)
        else:
            async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_s)) as client:
                response = await client.post(url, json=payload)

        response.raise_for_status()
        body = response.json()
        token = body.get("access_token")
        if not token:
            raise ValueError(f"Token response for '{credential.name}' has no access_token")

        lifetime = float(body.get("expires_in") or _DEFAULT_TOKEN_LIFETIME_S)
        expires_at = time.time() + max(0.0, lifetime - self.refresh_margin_s)
        return token, expires_at


class CredentialRegistry:
    """
    Ordered, thread-safe registry of credential slots.

    All mutations are protected by an ``RLock``. Token refreshes run outside
    the lock and are serialised per registry with an ``asyncio.Lock`` so two
    passes never refresh the same credential twice.
    """

    def __init__(self, issuer: Optional[TokenIssuer] = None) -> None:
        self._credentials: List[Credential] = []
        self._lock = threading.RLock()
        self._issuer = issuer
        self._refresh_lock: Optional[asyncio.Lock] = None

    @classmethod
    def from_settings(
        cls,
        settings: QueueSettings,
        issuer: Optional[TokenIssuer] = None,
    ) -> "CredentialRegistry":
        issuer = issuer or TokenIssuer(
            settings.base_url,
            refresh_margin_s=settings.token_refresh_margin_s,
            timeout_s=settings.request_timeout_s,
        )
        registry = cls(issuer=issuer)
        for cfg in settings.credentials:
            registry.register(cfg.app_key, cfg.app_secret, name=cfg.name)
        return registry

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def register(self, app_key: str, app_secret: str, name: str = "") -> Credential:
        with self._lock:
            credential = Credential(
                app_key=app_key,
                app_secret=app_secret,
                name=name or f"slot-{len(self._credentials)}",
            )
            self._credentials.append(credential)
        logger.info("Registered Open API credential %s", credential.name)
        return credential

    def unregister(self, name: str) -> bool:
        """Remove a credential by name. Returns ``True`` if it existed."""
        with self._lock:
            before = len(self._credentials)
            self._credentials = [c for c in self._credentials if c.name != name]
            removed = len(self._credentials) != before
        if removed:
            logger.info("Unregistered Open API credential %s", name)
        return removed

    def list_all(self) -> List[Credential]:
        with self._lock:
            return list(self._credentials)

    def clear(self) -> None:
        with self._lock:
            self._credentials.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._credentials)

    async def get_credential_slots(self) -> List[Credential]:
        """
        Return the credentials usable right now, in registration order.

        Expired or missing access tokens are refreshed first. A credential
        whose refresh fails is left out of this pass.
        """
        if self._refresh_lock is None:
            self._refresh_lock = asyncio.Lock()

        async with self._refresh_lock:
            usable = []
            for credential in self.list_all():
                if credential.is_token_valid():
                    usable.append(credential)
                    continue
                if self._issuer is None:
                    logger.warning("Credential %s has no valid token and no issuer is configured", credential.name)
                    continue
                try:
                    token, expires_at = await self._issuer.issue(credential)
                except Exception as e:
                    logger.warning("Token refresh failed for credential %s: %s", credential.name, e)
                    continue
                credential.access_token = token
                credential.token_expires_at = expires_at
                logger.info("Issued new access token for credential %s", credential.name)
                usable.append(credential)
            return usable
