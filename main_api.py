# main_api.py
import asyncio
import io
import logging
from typing import Any, Dict, Optional

import cv2
import uvicorn
from fastapi import FastAPI, HTTPException, Response
from PIL import Image

from mockmate.config.audio_config import AudioDeviceConfig
from mockmate.config.device_config import DeviceCheckSettings
from mockmate.models.device_check_schemas import DeviceCheckReport, InterviewConfig
from mockmate.services.device_check_session_manager import DeviceCheckSessionManager

# --- Setup Logging ---
from mockmate.core.log_config import setup_logging
setup_logging()
logger = logging.getLogger(__name__)

# --- Initialize FastAPI App ---
app = FastAPI( title="MockMate Device Check API", description="Pre-interview camera, microphone, speaker and network checks." )

# --- Service Initialization ---
device_check_mgr: Optional[DeviceCheckSessionManager] = None

try:
    device_check_mgr = DeviceCheckSessionManager(DeviceCheckSettings.from_env())
    logger.info("✅ All services initialized successfully.")
except Exception as e:
    logger.critical(f"❌ CRITICAL: Failed to initialize services: {e}", exc_info=True)


def _require_manager() -> DeviceCheckSessionManager:
    if device_check_mgr is None:
        raise HTTPException(status_code=503, detail="Services not initialized.")
    return device_check_mgr


def _require_report(session_id: str) -> DeviceCheckReport:
    report = _require_manager().get_report(session_id)
    if report is None:
        raise HTTPException(status_code=404, detail="Session not found.")
    return report


# --- API Endpoints ---
@app.on_event("startup")
async def startup_event():
    if device_check_mgr is None:
        logger.critical("❌ Device check manager failed to initialize.")
        return
    AudioDeviceConfig.list_all_audio_devices()

@app.on_event("shutdown")
async def shutdown_event():
    if device_check_mgr is not None:
        logger.info("Releasing devices held by open system checks...")
        device_check_mgr.end_all_sessions()

@app.get("/")
def read_root(): return { "status": "MockMate Device Check API is running" }

@app.post("/device-check", status_code=201)
async def start_device_check(config: InterviewConfig) -> Dict[str, Any]:
    """ Mounts a system check for the configured interview and starts all probes. """
    mgr = _require_manager()
    logger.info(f"📥 Device check request for: {config.candidate_name}")
    try:
        session_id = mgr.start_session(config)
    except Exception as e:
        logger.error(f"Failed to start device check: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to start device check.")
    return { "status": "checking", "message": "System check started.", "session_id": session_id }

@app.get("/device-check/{session_id}", response_model=DeviceCheckReport)
async def get_device_check(session_id: str):
    return _require_report(session_id)

@app.post("/device-check/{session_id}/retry", status_code=202)
async def retry_all_checks(session_id: str):
    mgr = _require_manager()
    if mgr.retry_all(session_id) is None:
        raise HTTPException(status_code=404, detail="Session not found.")
    return { "status": "retrying", "session_id": session_id }

@app.post("/device-check/{session_id}/retry/{device}", status_code=202)
async def retry_device_check(session_id: str, device: str):
    mgr = _require_manager()
    if device not in ("camera", "mic", "microphone"):
        raise HTTPException(status_code=400, detail="Invalid device (camera or mic).")
    if mgr.retry_device(session_id, device) is None:
        raise HTTPException(status_code=404, detail="Session not found.")
    return { "status": "retrying", "session_id": session_id, "device": device }

@app.post("/device-check/{session_id}/speaker-test")
async def speaker_test(session_id: str):
    played = await _require_manager().play_test_sound(session_id)
    if played is None:
        raise HTTPException(status_code=404, detail="Session not found.")
    return { "session_id": session_id, "played": played }

@app.get("/device-check/{session_id}/preview.jpg")
async def camera_preview(session_id: str):
    controller = _require_manager().get_controller(session_id)
    if controller is None:
        raise HTTPException(status_code=404, detail="Session not found.")
    frame = await asyncio.to_thread(controller.preview_frame)
    if frame is None:
        raise HTTPException(status_code=404, detail="Camera preview not available.")
    try:
        img = Image.fromarray(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
        buffer = io.BytesIO()
        img.save(buffer, "JPEG", quality=90)
    except Exception as e:
        logger.error(f"Failed to encode preview frame: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to encode preview.")
    return Response(content=buffer.getvalue(), media_type="image/jpeg")

@app.post("/device-check/{session_id}/complete")
async def complete_device_check(session_id: str):
    mgr = _require_manager()
    completed = mgr.complete(session_id)
    if completed is None:
        raise HTTPException(status_code=404, detail="Session not found.")
    if not completed:
        report = mgr.get_report(session_id)
        raise HTTPException(status_code=409, detail=report.continue_label if report else "Checks not passed.")
    return { "status": "completed", "session_id": session_id }

@app.post("/device-check/{session_id}/back")
async def go_back(session_id: str):
    went_back = _require_manager().go_back(session_id)
    if went_back is None:
        raise HTTPException(status_code=404, detail="Session not found.")
    return { "status": "closed", "session_id": session_id }

@app.delete("/device-check/{session_id}")
async def end_device_check(session_id: str):
    mgr = _require_manager()
    if mgr.get_session(session_id) is None:
        raise HTTPException(status_code=404, detail="Session not found.")
    mgr.end_session(session_id)
    return { "status": "ended", "session_id": session_id }

@app.get("/device-check")
async def list_device_checks():
    return _require_manager().get_all_active_sessions()

@app.get("/health")
async def health_check():
    services = { "device_check": device_check_mgr is not None }
    healthy = all(services.values())
    return { "status": "healthy" if healthy else "degraded", "services": services }

if __name__ == "__main__":
    print("="*70 + "\n🚀 Starting FastAPI server - MockMate Device Check\n" + "="*70)
    print("Server: http://127.0.0.1:8000 | Docs: http://127.0.0.1:8000/docs")
    print("\n`POST /device-check` expects an InterviewConfig JSON body")
    print("="*70 + "\n")
    uvicorn.run("main_api:app", host="127.0.0.1", port=8000, reload=True)
