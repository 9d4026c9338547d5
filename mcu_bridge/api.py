# mcu_bridge/api.py
from __future__ import annotations

import time
from typing import Optional

from fastapi import FastAPI
from pydantic import BaseModel, Field

from .control_loop import BridgeRunner, LatestSnapshotSink


# ---------- Pydantic models ----------

class DriveCmd(BaseModel):
    """
    Velocity setpoint. Out-of-range values are clamped by the bridge.
    """
    linear_x: float = Field(..., description="Linear velocity command [m/s]")
    angular_z: float = Field(..., description="Angular velocity command [rad/s]")


class AngleCmd(BaseModel):
    angle: float = Field(..., description="Joint angle [rad]")


class ModeCmd(BaseModel):
    mode: int = Field(..., ge=0, le=255, description="Operating mode selector")


class StatusResponse(BaseModel):
    cycles: int
    link_open: bool
    telemetry: Optional[dict]
    server_time_ms: int


def create_app(runner: BridgeRunner, sink: LatestSnapshotSink) -> FastAPI:
    """
    HTTP front end for the bridge.

    Commands are queued onto the bridge worker; status is read from the
    last snapshot the worker published.
    """
    app = FastAPI(title="MCU Serial Bridge")

    @app.post("/drive", response_model=dict)
    async def set_drive(cmd: DriveCmd):
        runner.drive(cmd.linear_x, cmd.angular_z)
        return {"status": "ok"}

    @app.post("/finger", response_model=dict)
    async def set_finger(cmd: AngleCmd):
        runner.finger(cmd.angle)
        return {"status": "ok"}

    @app.post("/wrist", response_model=dict)
    async def set_wrist(cmd: AngleCmd):
        runner.wrist(cmd.angle)
        return {"status": "ok"}

    @app.post("/mode", response_model=dict)
    async def set_mode(cmd: ModeCmd):
        runner.mode(cmd.mode)
        return {"status": "ok"}

    @app.get("/status", response_model=StatusResponse)
    async def get_status():
        """
        Latest published sensor snapshot, setpoint and mode.
        `telemetry` is null until the first control cycle has run.
        """
        snapshot = sink.latest
        return StatusResponse(
            cycles=sink.count,
            link_open=runner.controller.link.is_open,
            telemetry=snapshot.as_dict() if snapshot is not None else None,
            server_time_ms=int(time.time() * 1000),
        )

    return app
