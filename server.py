"""
Putting Web Server - Layer 3 (FastAPI + WebSocket)

Stateless HTTP endpoints for one-shot simulation and distance sync, plus a
WebSocket that simulates a putt and streams its sealed trajectory back to a
browser renderer at playback speed.
"""

import asyncio
import json
import logging
from typing import List, Optional

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from capture import recommend_putt
from controller import PuttingController, TrajectoryPlayback
from engine import simulate
from physics import (
    FIXED_TIMESTEP, InvalidDistance, InvalidInput, PuttingError, PuttingInput,
    REFERENCE_GREEN_SPEED, SimulationInProgress,
)
from presets import get_preset, list_presets, params_table
from sync import DistanceSynchronizer

logger = logging.getLogger(__name__)

app = FastAPI(title="Putting Simulator")

synchronizer = DistanceSynchronizer()

# Playback frame rate for WebSocket streaming
TARGET_FPS = 60
FRAME_DT = 1.0 / TARGET_FPS


# ── Request models ──────────────────────────────────────────────────────────

class PuttRequest(BaseModel):
    hole_distance_feet: float
    power_percent: float
    power_distance_feet: Optional[float] = None
    aim_angle_degrees: float = 0.0
    green_speed: float = REFERENCE_GREEN_SPEED
    slope_up_down: float = 0.0
    slope_left_right: float = 0.0
    preset: str = "canonical"
    include_trajectory: bool = True

    def to_input(self) -> PuttingInput:
        power_distance = (self.hole_distance_feet if self.power_distance_feet is None
                          else self.power_distance_feet)
        return PuttingInput(
            power_distance_feet=power_distance,
            hole_distance_feet=self.hole_distance_feet,
            power_percent=self.power_percent,
            aim_angle_degrees=self.aim_angle_degrees,
            green_speed=self.green_speed,
            slope_up_down=self.slope_up_down,
            slope_left_right=self.slope_left_right,
        )


class DistanceRequest(BaseModel):
    ball_position_yards: float
    hole_position_yards: float
    observed_ball: Optional[List[float]] = None
    observed_hole: Optional[List[float]] = None


# ── Errors ──────────────────────────────────────────────────────────────────

@app.exception_handler(PuttingError)
async def putting_error_handler(request: Request, exc: PuttingError):
    status = 409 if isinstance(exc, SimulationInProgress) else 422
    return JSONResponse(status_code=status,
                        content={"detail": str(exc), "error": type(exc).__name__})


# ── HTTP endpoints ──────────────────────────────────────────────────────────

@app.get("/api/presets")
async def presets():
    return list_presets()


@app.get("/api/params")
async def params(preset: str = "canonical"):
    return params_table(get_preset(preset))


@app.post("/api/putt")
async def putt(req: PuttRequest):
    config = get_preset(req.preset)
    outcome = simulate(req.to_input(), config=config)
    result = outcome.to_dict(include_trajectory=req.include_trajectory)
    result["preset"] = {"name": config.name, "version": config.version}
    return result


@app.post("/api/distance")
async def distance(req: DistanceRequest):
    if req.observed_ball is not None and len(req.observed_ball) != 3:
        raise InvalidInput("observed_ball must be [x, y, z]")
    if req.observed_hole is not None and len(req.observed_hole) != 3:
        raise InvalidInput("observed_hole must be [x, y, z]")
    state = synchronizer.distance_state(req.ball_position_yards, req.hole_position_yards,
                                        req.observed_ball, req.observed_hole)
    synchronizer.log_analysis(state)
    report = synchronizer.validate(state)
    disp = synchronizer.display(state)
    return {
        "state": state.to_dict(),
        "report": {"is_accurate": report.is_accurate, "issues": report.issues,
                   "recommendations": report.recommendations},
        "display": {"primary": disp.primary, "secondary": disp.secondary,
                    "precision": disp.precision, "difficulty": disp.difficulty},
    }


@app.get("/api/recommend")
async def recommend(distance_feet: float):
    if not distance_feet > 0:
        raise InvalidDistance(f"distance_feet must be > 0, got {distance_feet}")
    rec = recommend_putt(distance_feet)
    return {
        "recommended_power": rec.recommended_power,
        "power_range": [round(rec.power_min, 2), round(rec.power_max, 2)],
        "aim_tolerance_degrees": round(rec.aim_tolerance_degrees, 3),
        "success_probability": rec.success_probability,
        "tips": rec.tips,
    }


# ── WebSocket playback ──────────────────────────────────────────────────────

def _points_msg(points) -> list:
    return [[round(float(v), 5) for v in p] for p in points]


async def _stream_playback(ws: WebSocket, ctrl: PuttingController,
                           playback: TrajectoryPlayback, realtime: bool) -> None:
    """Send pre-computed points frame by frame; never touches the engine."""
    try:
        if not realtime:
            pts = playback.advance(len(playback.trajectory) * playback.timestep)
            await ws.send_text(json.dumps({"type": "frame", "points": _points_msg(pts)},
                                          separators=(',', ':')))
        while not playback.done:
            pts = playback.advance(FRAME_DT)
            if pts:
                await ws.send_text(json.dumps({"type": "frame", "points": _points_msg(pts)},
                                              separators=(',', ':')))
            await asyncio.sleep(FRAME_DT)
        await ws.send_text(json.dumps({"type": "playback_end",
                                       "cancelled": playback.cancelled}))
    finally:
        # a newer putt owns the controller now
        if ctrl.playback is playback:
            ctrl.acknowledge()


def _reap(task: asyncio.Task) -> None:
    """Collect a finished stream task so a failed send is not left unretrieved."""
    if not task.cancelled() and task.exception() is not None:
        logger.debug("playback stream ended with %r", task.exception())


def _putt_from_msg(msg: dict) -> PuttingInput:
    data = msg.get("putt") or {}
    try:
        return PuttRequest(**data).to_input()
    except (TypeError, ValueError) as exc:
        raise InvalidInput(f"bad putt payload: {exc}") from exc


@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await ws.accept()
    ctrl = PuttingController()
    task: Optional[asyncio.Task] = None

    await ws.send_text(json.dumps({
        "type": "init",
        "timestep": FIXED_TIMESTEP,
        "preset": ctrl.config.name,
        "presets": list_presets(),
    }))

    try:
        while True:
            data = await ws.receive_text()
            try:
                msg = json.loads(data)
            except json.JSONDecodeError:
                continue
            if not isinstance(msg, dict):
                continue

            cmd = msg.get("cmd", "")
            try:
                if cmd == "putt":
                    putt_input = _putt_from_msg(msg)
                    if "preset" in msg:
                        ctrl.load_preset(msg["preset"])
                    if task is not None:
                        if not task.done():
                            ctrl.playback.cancel()
                            await asyncio.wait([task])
                        _reap(task)
                    outcome = ctrl.attempt(putt_input)
                    await ws.send_text(json.dumps({
                        "type": "result",
                        "outcome": outcome.to_dict(include_trajectory=False),
                        "status": ctrl.status_msg,
                    }))
                    task = asyncio.create_task(_stream_playback(
                        ws, ctrl, ctrl.playback, bool(msg.get("realtime", True))))
                elif cmd == "cancel":
                    if ctrl.playback is not None:
                        ctrl.playback.cancel()
                elif cmd == "get_presets":
                    await ws.send_text(json.dumps({"type": "presets", "data": list_presets()}))
            except PuttingError as exc:
                await ws.send_text(json.dumps({"type": "error", "detail": str(exc),
                                               "error": type(exc).__name__}))
    except WebSocketDisconnect:
        pass
    finally:
        if task is not None:
            if task.done():
                _reap(task)
            else:
                task.cancel()


# ── Run with uvicorn ────────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO,
                        format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    uvicorn.run("server:app", host="0.0.0.0", port=8000, reload=False)
