"""
실시간 TUG 검사 WebSocket 엔드포인트
- 브라우저 포즈 모델(PoseNet 키포인트 또는 MediaPipe 랜드마크)에서 추출한 좌표를 수신
- 프레임마다 단계 판정 (착석 → 기립 → 보행 → 회전 → 복귀 → 회전 → 착석)
- 검사 완료 시 단계별 시간 + CSV(tug_data.csv) 반환
"""
import json
import logging
import os
from datetime import datetime
from typing import Annotated, Dict, List, Optional, Tuple

from fastapi import APIRouter, HTTPException, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field, ValidationError
from slowapi import Limiter
from slowapi.util import get_remote_address

from analysis.tug import (
    AcquisitionFailure,
    TUGPhase,
    TUGRunner,
    TUGThresholds,
    UnknownBodyPart,
)
from analysis.tug.phase_machine import TickResult

logger = logging.getLogger(__name__)

router = APIRouter()
_rate_limit_enabled = os.getenv("TESTING", "").lower() != "true"
limiter = Limiter(key_func=get_remote_address, enabled=_rate_limit_enabled)

PHASE_LABELS = {
    TUGPhase.AWAITING_START: "대기",
    TUGPhase.AWAITING_STAND_UP: "착석",
    TUGPhase.AWAITING_STOOD_UP: "기립",
    TUGPhase.WALKING_FORWARD: "보행",
    TUGPhase.TURNING_1: "회전",
    TUGPhase.WALKING_BACK: "복귀",
    TUGPhase.TURNING_2: "회전",
    TUGPhase.AWAITING_SIT_DOWN: "착석",
    TUGPhase.COMPLETE: "완료",
}


Coordinate = Annotated[float, Field(allow_inf_nan=False)]
# [x, y] 또는 [x, y, z, visibility]
Landmark = Annotated[List[Coordinate], Field(min_length=2)]


class RawKeypoint(BaseModel):
    part: str
    x: Coordinate
    y: Coordinate
    score: float = Field(ge=0, le=1)


class FrameMessage(BaseModel):
    keypoints: Optional[List[RawKeypoint]] = None
    score: Optional[float] = Field(default=None, ge=0, le=1)
    landmarks: Optional[List[Landmark]] = None
    image_size: Optional[Tuple[int, int]] = None
    timestamp: Optional[float] = None


class ReplayRequest(BaseModel):
    frames: List[FrameMessage]


def _phase_name(phase) -> str:
    return phase.name.lower() if isinstance(phase, TUGPhase) else str(phase)


def _elapsed_seconds(runner: TUGRunner) -> float:
    start = runner.session.timestamps.stand_up_start
    if start is None or runner.last_frame is None:
        return 0.0
    return (runner.last_frame.timestamp_ms - start) / 1000.0


def _apply_frame(runner: TUGRunner, msg: FrameMessage) -> Optional[TickResult]:
    if msg.landmarks is not None:
        return runner.tick_mediapipe(msg.landmarks, msg.timestamp, image_size=msg.image_size)
    keypoints = [kp.model_dump() for kp in (msg.keypoints or [])]
    score = msg.score if msg.score is not None else 0.0
    return runner.tick(keypoints, score, msg.timestamp)


def _result_message(runner: TUGRunner, result: TickResult) -> Dict:
    payload = {
        "type": "phase_update",
        "current_phase": _phase_name(result.phase),
        "phase_label": PHASE_LABELS.get(result.phase, "-"),
        "prompt": result.prompt,
        "elapsed_time": round(_elapsed_seconds(runner), 1),
        "hip_angle": round(result.hip_angle, 1) if result.hip_angle is not None else None,
        "speed_mps": round(runner.sampler.state.display_speed, 2),
        "stall_reason": result.stall_reason,
    }

    if result.report is not None:
        return {
            **payload,
            "type": "test_completed",
            **result.report.to_dict(),
            "summary": result.report.summary_text(),
            "csv": result.report.to_csv(),
        }

    if result.transitioned:
        payload.update({
            "type": "phase_transition",
            "from_phase": _phase_name(result.previous_phase),
            "to_phase": _phase_name(result.phase),
            "timestamps": runner.session.timestamps.to_dict(),
        })
    return payload


@router.get("/api/tug/config")
@limiter.limit("30/minute")
async def get_tug_config(request: Request):
    """현재 적용 중인 TUG 임계값"""
    return TUGThresholds.from_env().to_dict()


@router.post("/api/tug/replay")
async def replay_tug(body: ReplayRequest, format: str = Query(default="json", pattern="^(json|csv)$")):
    """기록된 프레임 시퀀스를 순서대로 재생하여 TUG 결과 계산"""
    runner = TUGRunner(TUGThresholds.from_env())
    runner.start()
    last: Optional[TickResult] = None
    for msg in body.frames:
        if not runner.running:
            break
        try:
            last = _apply_frame(runner, msg)
        except UnknownBodyPart as e:
            raise HTTPException(status_code=400, detail=str(e))

    report = runner.last_report
    if report is None:
        return {
            "completed": False,
            "current_phase": _phase_name(runner.phase),
            "stall_reason": last.stall_reason if last else None,
        }

    if format == "csv":
        timestamp = datetime.now().strftime("%Y%m%d_%H%M")
        return StreamingResponse(
            iter([report.to_csv()]),
            media_type="text/csv",
            headers={"Content-Disposition": f"attachment; filename=tug_data_{timestamp}.csv"},
        )
    return {"completed": True, **report.to_dict(), "csv": report.to_csv()}


@router.websocket("/ws/tug-realtime/{client_id}")
async def tug_realtime_websocket(websocket: WebSocket, client_id: str):
    await websocket.accept()
    runner = TUGRunner(TUGThresholds.from_env())
    logger.info("TUG realtime client connected: %s", client_id)

    try:
        while True:
            data = await websocket.receive_text()
            try:
                msg = json.loads(data)
            except json.JSONDecodeError:
                msg = None
            if not isinstance(msg, dict):
                await websocket.send_json({"type": "error", "message": "잘못된 메시지 형식입니다."})
                continue

            msg_type = msg.get("type")

            if msg_type == "ping":
                await websocket.send_json({"type": "pong"})

            elif msg_type == "start_test":
                runner.start()
                await websocket.send_json({
                    "type": "test_started",
                    "message": "실시간 TUG 검사가 시작되었습니다.",
                    "current_phase": _phase_name(runner.phase),
                })

            elif msg_type == "frame_data":
                if not runner.running:
                    await websocket.send_json({"type": "error", "message": "검사가 시작되지 않았습니다."})
                    continue
                try:
                    frame_msg = FrameMessage.model_validate(msg)
                    result = _apply_frame(runner, frame_msg)
                except (ValidationError, UnknownBodyPart) as e:
                    await websocket.send_json({"type": "error", "message": str(e)})
                    continue
                response = _result_message(runner, result)
                await websocket.send_json(response)
                if response["type"] == "test_completed":
                    logger.info("TUG realtime test completed for %s: %ss",
                                client_id, response["total_time_seconds"])

            elif msg_type == "frame_error":
                runner.skip(AcquisitionFailure(msg.get("message", "pose estimation failed")))
                await websocket.send_json({
                    "type": "frame_skipped",
                    "consecutive_failures": runner.consecutive_failures,
                })

            elif msg_type == "stop_test":
                runner.stop()
                await websocket.send_json({
                    "type": "test_stopped",
                    "current_phase": _phase_name(runner.phase),
                })

    except WebSocketDisconnect:
        logger.info("TUG realtime client disconnected: %s", client_id)
    finally:
        runner.stop()
