"""Polls spark masters for the applications they are running."""
import json
import logging
from typing import Iterable, List, Optional
from marshmallow import ValidationError
from yarl import URL

from sparkop.sensors import SensorDelegate
from sparkop.types.models.master_state import Application, MasterState
from sparkop.types.schemas.master_state import MasterStateSchema
from .client import SparkMasterClient
from .error import (
    AuthenticationError,
    EndpointConnectionError,
    NotFoundError,
    ResponseReadError,
)

log = logging.getLogger(__name__)

CONNECTION_ERRORS = (EndpointConnectionError, AuthenticationError, NotFoundError)


class ClusterStateProber:
    """Asks every known master of a cluster for its state.

    Endpoints are visited one after another. An endpoint which cannot be
    reached, whose response cannot be read, or whose payload does not parse is
    logged and skipped, so probing never fails as a whole.
    """

    client: SparkMasterClient
    sensor: SensorDelegate
    logger: logging.Logger

    def __init__(
        self,
        client: SparkMasterClient,
        sensor: SensorDelegate = None,
        logger: logging.Logger = None,
    ):
        self.client = client
        self.sensor = sensor or SensorDelegate()
        self.logger = logger or log
        self.schema = MasterStateSchema()

    def _observe(self, endpoint, outcome: str):
        self.sensor.on_probe_endpoint(str(endpoint), outcome)

    def parse(self, body: bytes) -> MasterState:
        """Parse a master status document.

        Raises:
            ValueError: body is not valid JSON.
            ValidationError: a required field is missing or has the wrong type.
        """
        return self.schema.load(json.loads(body))

    async def request_state(self, endpoint: URL) -> Optional[MasterState]:
        try:
            body = await self.client.fetch(endpoint)
        except CONNECTION_ERRORS as ex:
            self.logger.error(f"Cannot connect to spark master {endpoint}: {ex}")
            self._observe(endpoint, "connection_error")
            return None
        except ResponseReadError as ex:
            self.logger.error(f"Cannot read response of spark master {endpoint}: {ex}")
            self._observe(endpoint, "read_error")
            return None

        try:
            state = self.parse(body)
        except (ValidationError, ValueError) as ex:
            self.logger.error(f"Cannot parse state of spark master {endpoint}: {ex}")
            self._observe(endpoint, "parse_error")
            return None

        self._observe(endpoint, "ok")
        return state

    async def request_states(self, endpoints: Iterable[URL]) -> List[MasterState]:
        """Collect the state of every master that answered properly."""
        states = []
        for endpoint in endpoints:
            state = await self.request_state(endpoint)
            if state is not None:
                states.append(state)
        return states

    async def probe_running_applications(
        self, endpoints: Iterable[URL]
    ) -> List[Application]:
        """Return all applications in state RUNNING across the given masters."""
        states = await self.request_states(endpoints)
        return [app for state in states for app in state.running_applications()]
