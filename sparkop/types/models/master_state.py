from enum import Enum
from typing import List
from sparkop.types.base import BaseModel


class ApplicationState(str, Enum):
    FAILED = "FAILED"
    FINISHED = "FINISHED"
    RUNNING = "RUNNING"
    WAITING = "WAITING"


class Application(BaseModel):
    """An application submitted to a spark master."""

    id: str
    start_time: int
    name: str
    cores: int
    memory_per_slave: int
    submit_date: str
    state: ApplicationState
    duration: int

    @property
    def is_running(self) -> bool:
        return self.state == ApplicationState.RUNNING

    def info(self):
        return {
            "id": self.id,
            "name": self.name,
            "state": self.state.value,
            "cores": self.cores,
            "submitDate": self.submit_date,
        }


class WorkerState(BaseModel):
    """A worker as seen by a spark master."""

    id: str
    host: str
    port: int
    web_ui_address: str
    cores: int
    memory: int
    memory_used: int
    memory_free: int
    state: str
    last_heartbeat: int


class MasterState(BaseModel):
    """Status snapshot served by a spark master at `/json`."""

    url: str
    workers: List[WorkerState]
    alive_workers: int
    active_apps: List[Application]
    completed_apps: List[Application]
    status: str

    def running_applications(self) -> List[Application]:
        return [app for app in self.active_apps if app.is_running]
