"""Base directory provider interface."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass

from directory_api.models.domain.sync import RemoteUser
from directory_api.models.domain.tenant import Tenant


@dataclass(frozen=True)
class DirectoryClient:
    """Authenticated handle for one tenant's directory."""

    access_token: str
    customer: str


class DirectoryProvider(ABC):
    """Abstract base class for identity directory integrations.

    Implementations signal failures with AuthenticationError, RateLimitedError
    or TransportError. Any of them fails the whole fetch.
    """

    @abstractmethod
    async def authenticate(self, tenant: Tenant) -> DirectoryClient:
        """Authenticate against the tenant's directory.

        Raises:
            AuthenticationError: On missing, invalid or revoked credentials
        """
        pass

    @abstractmethod
    def iter_users(self, client: DirectoryClient, tenant: Tenant) -> AsyncIterator[RemoteUser]:
        """Yield every directory user, following page tokens until exhausted.

        The iterator is single-use.
        """
        pass

    async def list_users(self, client: DirectoryClient, tenant: Tenant) -> list[RemoteUser]:
        """Fetch the complete user list.

        Returns only after the last page arrived, so callers never see a
        partial directory.
        """
        return [user async for user in self.iter_users(client, tenant)]

    async def fetch_users(self, tenant: Tenant) -> list[RemoteUser]:
        """Authenticate and fetch all users for a tenant."""
        client = await self.authenticate(tenant)
        return await self.list_users(client, tenant)
