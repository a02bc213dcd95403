"""Google Workspace Directory API provider."""

import asyncio
import json
import logging
import time
from collections.abc import AsyncIterator
from typing import Any

import httpx
from jose import jwt
from jose.exceptions import JOSEError

from directory_api.config import Settings, get_settings
from directory_api.exceptions import AuthenticationError, RateLimitedError, TransportError
from directory_api.models.domain.sync import RemoteUser
from directory_api.models.domain.tenant import Tenant
from directory_api.providers.base import DirectoryClient, DirectoryProvider
from directory_api.security.encryption import EncryptionService, get_encryption_service

logger = logging.getLogger(__name__)

DIRECTORY_SCOPES = (
    "https://www.googleapis.com/auth/admin.directory.user.readonly "
    "https://www.googleapis.com/auth/admin.directory.group.readonly"
)

# 403 reasons Google uses for quota exhaustion instead of 429
RATE_LIMIT_REASONS = {"rateLimitExceeded", "userRateLimitExceeded", "quotaExceeded"}

PHONE_TYPES = ("work", "mobile")


class GoogleWorkspaceProvider(DirectoryProvider):
    """Google Workspace directory integration using domain-wide delegation."""

    def __init__(
        self,
        settings: Settings | None = None,
        encryption: EncryptionService | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            settings: Application settings (defaults to cached settings)
            encryption: Service used to open tenant credential blobs
            transport: Optional httpx transport, used by tests
        """
        self.settings = settings or get_settings()
        self._encryption = encryption
        self._transport = transport

    @property
    def encryption(self) -> EncryptionService:
        if self._encryption is None:
            self._encryption = get_encryption_service()
        return self._encryption

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self._transport,
            timeout=self.settings.sync_http_timeout_seconds,
        )

    def _load_service_account(self, tenant: Tenant) -> dict[str, Any]:
        """Decrypt the tenant credential blob into service account JSON."""
        if not tenant.credentials_encrypted or not tenant.admin_email:
            raise AuthenticationError(
                "Missing service account key or admin email",
                {"tenant": tenant.domain},
            )
        try:
            credentials = self.encryption.decrypt(tenant.credentials_encrypted)
        except ValueError as e:
            raise AuthenticationError("Tenant credentials could not be decrypted") from e

        service_account = credentials.get("service_account_json", credentials)
        if isinstance(service_account, str):
            try:
                service_account = json.loads(service_account)
            except json.JSONDecodeError as e:
                raise AuthenticationError("Service account key is not valid JSON") from e

        if not isinstance(service_account, dict) or not (
            service_account.get("client_email") and service_account.get("private_key")
        ):
            raise AuthenticationError("Service account key lacks client_email or private_key")
        return service_account

    async def authenticate(self, tenant: Tenant) -> DirectoryClient:
        """Exchange a signed service account assertion for an access token."""
        service_account = self._load_service_account(tenant)
        now = int(time.time())
        payload = {
            "iss": service_account["client_email"],
            "sub": tenant.admin_email,  # Impersonate the tenant admin
            "scope": DIRECTORY_SCOPES,
            "aud": self.settings.google_token_url,
            "iat": now,
            "exp": now + 3600,
        }
        try:
            assertion = jwt.encode(payload, service_account["private_key"], algorithm="RS256")
        except JOSEError as e:
            raise AuthenticationError("Service account private key is unusable") from e

        async with self._http_client() as http:
            try:
                response = await http.post(
                    self.settings.google_token_url,
                    data={
                        "grant_type": "urn:ietf:params:oauth:grant-type:jwt-bearer",
                        "assertion": assertion,
                    },
                )
            except httpx.HTTPError as e:
                raise TransportError(f"Token request failed: {type(e).__name__}") from e

        if response.status_code == 429:
            raise RateLimitedError(retry_after=_retry_after(response))
        if response.status_code >= 500:
            raise TransportError(f"Token endpoint returned HTTP {response.status_code}")
        if response.status_code != 200:
            raise AuthenticationError(
                "Directory credentials were rejected",
                {"status_code": response.status_code, "error": _oauth_error(response)},
            )

        token = _json(response).get("access_token")
        if not token:
            raise AuthenticationError("Token response did not contain an access token")

        return DirectoryClient(access_token=token, customer=tenant.customer_id or "my_customer")

    async def iter_users(self, client: DirectoryClient, tenant: Tenant) -> AsyncIterator[RemoteUser]:
        """Page through the Directory API users endpoint."""
        page_token: str | None = None
        pages = 0
        async with self._http_client() as http:
            while True:
                params: dict[str, Any] = {
                    "customer": client.customer,
                    "maxResults": self.settings.sync_page_size,
                    "projection": "full",
                    "orderBy": "email",
                }
                if page_token:
                    params["pageToken"] = page_token

                data = await self._get_page(http, client, params)
                pages += 1
                for payload in data.get("users") or []:
                    yield self.normalize_user(payload)

                page_token = data.get("nextPageToken")
                if not page_token:
                    break

        logger.info(f"Fetched {pages} directory page(s) for {tenant.domain}")

    async def _get_page(
        self,
        http: httpx.AsyncClient,
        client: DirectoryClient,
        params: dict[str, Any],
    ) -> dict[str, Any]:
        """Fetch one page, backing off on rate limits.

        Raises:
            AuthenticationError: On 401/403
            RateLimitedError: When rate limited beyond the retry budget
            TransportError: On network errors, 5xx or undecodable bodies
        """
        max_retries = self.settings.sync_rate_limit_max_retries
        for attempt in range(max_retries + 1):
            try:
                response = await http.get(
                    self.settings.google_directory_url,
                    headers={"Authorization": f"Bearer {client.access_token}"},
                    params=params,
                )
            except httpx.HTTPError as e:
                raise TransportError(f"Directory request failed: {type(e).__name__}") from e

            if _is_rate_limited(response):
                retry_after = _retry_after(response)
                if attempt >= max_retries:
                    raise RateLimitedError(retry_after=retry_after)
                wait = min(
                    retry_after if retry_after is not None else float(2**attempt),
                    self.settings.sync_rate_limit_max_wait_seconds,
                )
                logger.warning(
                    f"Directory API rate limited, waiting {wait}s "
                    f"(attempt {attempt + 1}/{max_retries})"
                )
                await asyncio.sleep(wait)
                continue

            if response.status_code in (401, 403):
                raise AuthenticationError(
                    "Directory API denied access",
                    {"status_code": response.status_code},
                )
            if response.status_code != 200:
                raise TransportError(f"Directory API returned HTTP {response.status_code}")

            data = _json(response)
            if not isinstance(data, dict):
                raise TransportError("Directory API returned an unexpected payload")
            return data

        # Loop always returns or raises
        raise RateLimitedError()

    @staticmethod
    def normalize_user(payload: Any) -> RemoteUser:
        """Map a Directory API user resource to a RemoteUser.

        Never raises: a payload that cannot be mapped comes back with
        invalid_reason set, so the reconciler records it against the run.
        """
        if not isinstance(payload, dict):
            return RemoteUser(id="", primary_email="", invalid_reason="user payload is not an object")

        user_id = str(payload.get("id") or "")
        primary_email = payload.get("primaryEmail")
        try:
            name = payload.get("name") or {}
            phone = next(
                (
                    p["value"]
                    for p in payload.get("phones") or []
                    if p.get("type") in PHONE_TYPES and p.get("value")
                ),
                None,
            )
            locations = payload.get("locations") or []
            location = locations[0].get("buildingId") if locations else None

            return RemoteUser(
                id=user_id,
                primary_email=primary_email or "",
                full_name=name.get("fullName"),
                given_name=name.get("givenName"),
                family_name=name.get("familyName"),
                avatar_url=payload.get("thumbnailPhotoUrl"),
                suspended=payload.get("suspended") is True,
                phone=phone,
                location=location,
                raw={
                    "orgUnitPath": payload.get("orgUnitPath"),
                    "customSchemas": payload.get("customSchemas") or {},
                },
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            return RemoteUser(
                id=user_id,
                primary_email=primary_email if isinstance(primary_email, str) else "",
                invalid_reason=f"malformed user payload ({type(e).__name__})",
            )


def _json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise TransportError("Directory API returned an undecodable response") from e


def _oauth_error(response: httpx.Response) -> str | None:
    try:
        return response.json().get("error")
    except (ValueError, AttributeError):
        return None


def _is_rate_limited(response: httpx.Response) -> bool:
    if response.status_code == 429:
        return True
    if response.status_code != 403:
        return False
    try:
        errors = response.json().get("error", {}).get("errors", [])
    except (ValueError, AttributeError):
        return False
    return any(isinstance(e, dict) and e.get("reason") in RATE_LIMIT_REASONS for e in errors)


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None
