from marshmallow import fields
from sparkop.types.base import StrictSchema
from sparkop.types.models.master_state import (
    Application,
    ApplicationState,
    WorkerState,
    MasterState,
)


class ApplicationSchema(StrictSchema):
    __model__ = Application

    id = fields.Str(data_key="id", required=True)
    start_time = fields.Int(data_key="starttime", required=True)
    name = fields.Str(data_key="name", required=True)
    cores = fields.Int(data_key="cores", required=True)
    memory_per_slave = fields.Int(data_key="memoryperslave", required=True)
    submit_date = fields.Str(data_key="submitdate", required=True)
    state = fields.Enum(ApplicationState, data_key="state", required=True)
    duration = fields.Int(data_key="duration", required=True)


class WorkerStateSchema(StrictSchema):
    __model__ = WorkerState

    id = fields.Str(data_key="id", required=True)
    host = fields.Str(data_key="host", required=True)
    port = fields.Int(data_key="port", required=True)
    web_ui_address = fields.Str(data_key="webuiaddress", required=True)
    cores = fields.Int(data_key="cores", required=True)
    memory = fields.Int(data_key="memory", required=True)
    memory_used = fields.Int(data_key="memoryused", required=True)
    memory_free = fields.Int(data_key="memoryfree", required=True)
    state = fields.Str(data_key="state", required=True)
    last_heartbeat = fields.Int(data_key="lastheartbeat", required=True)


class MasterStateSchema(StrictSchema):
    """Payload served by a spark master at `/json`."""

    __model__ = MasterState

    url = fields.Str(data_key="url", required=True)
    workers = fields.List(fields.Nested(WorkerStateSchema()), required=True)
    alive_workers = fields.Int(data_key="aliveworkers", required=True)
    active_apps = fields.List(
        fields.Nested(ApplicationSchema()), data_key="activeapps", required=True
    )
    completed_apps = fields.List(
        fields.Nested(ApplicationSchema()), data_key="completedapps", required=True
    )
    status = fields.Str(data_key="status", required=True)
