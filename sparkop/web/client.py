"""Spark master web UI client."""
from yarl import URL
from .session import SessionManager


class SparkMasterClient(SessionManager):
    """Client for the JSON status page of spark masters."""

    async def fetch(self, endpoint: URL) -> bytes:
        """Fetch the raw status document of one master."""
        return await self.get(endpoint)

