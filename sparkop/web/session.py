import asyncio
import aiohttp
from typing import Any, Dict, Mapping, Optional, Union

from yarl import URL

from sparkop.types.base import BaseModel

from .error import (
    AuthenticationError,
    EndpointConnectionError,
    NotFoundError,
    ResponseReadError,
)

HEADERS = {
    "Accept": "application/json",
    "Accept-Encoding": "gzip, deflate",
    "Connection": "keep-alive",
}

"""Default timeout in seconds"""
TIMEOUT: float = 10


class SessionManager(BaseModel):
    """Owns the aiohttp session used to talk to spark daemons.

    The session is opened on first use so the manager can be built outside of
    a running event loop.
    """

    def __init__(
        self,
        headers: Optional[Mapping] = None,
        **kwargs: Any
    ) -> None:

        merged_headers = dict(**HEADERS)
        merged_headers.update(headers or {})

        self.headers = merged_headers
        self.session: Optional[aiohttp.ClientSession] = None
        self.timeout = aiohttp.ClientTimeout(total=kwargs.pop("timeout", TIMEOUT))
        super().__init__(**kwargs)

    def _session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                headers=self.headers, timeout=self.timeout
            )
        return self.session

    async def get(
        self,
        url: Union[str, URL],
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Mapping] = None,
        raise_errors: bool = True,
    ) -> bytes:
        """Run a wrapped session HTTP GET request.
        Args:
            url: The url to get from.
            params: query string parameters
            headers: A dict adding to and overriding the session headers.
            raise_errors: Whether or not raise errors on GET request result.
        Returns:
            The raw response body.
        Raises:
            EndpointConnectionError: The endpoint could not be reached, timed out
                or answered with an error status.
            ResponseReadError: The response body could not be read.
        """
        params = {} if params is None else params
        headers = {} if headers is None else headers

        try:
            res = await self._session().get(str(url), params=params, headers=headers)
        except (aiohttp.ClientError, asyncio.TimeoutError) as ex:
            raise EndpointConnectionError(
                f"GET {url} failed: {ex.__class__.__name__} {ex}"
            ) from ex

        async with res:
            if res.status == 401:
                raise AuthenticationError("Unauthorized")
            if res.status == 403:
                raise AuthenticationError("Forbidden")
            if res.status == 404:
                raise NotFoundError("Not found")
            if raise_errors:
                try:
                    res.raise_for_status()
                except aiohttp.ClientResponseError as ex:
                    raise EndpointConnectionError(
                        f"GET {url} returned {ex.status}: {ex.message}"
                    ) from ex
            try:
                return await res.read()
            except (aiohttp.ClientError, asyncio.TimeoutError) as ex:
                raise ResponseReadError(
                    f"Reading response of GET {url} failed: {ex.__class__.__name__} {ex}"
                ) from ex

    def __repr__(self) -> str:
        return f"SessionManager<{self.headers}>"

    async def close(self) -> None:
        """Close the underlying session"""
        if self.session:
            await self.session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
