# mockmate/services/device_check_session_manager.py
"""
Device Check Session Manager
Keeps one DeviceCheckController per candidate system check and routes caller actions to it.
"""
import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from mockmate.config.device_config import DeviceCheckSettings
from mockmate.core.tasks import TaskHandle
from mockmate.models.device_check_schemas import DeviceCheckReport, InterviewConfig
from mockmate.services.check_report import build_report
from mockmate.services.device_check_controller import DeviceCheckController
from mockmate.services.media_devices import MediaDevices, SystemMediaDevices

logger = logging.getLogger(__name__)


class DeviceCheckSessionManager:
    """Manages system check sessions and their device resources."""

    def __init__(
        self,
        settings: Optional[DeviceCheckSettings] = None,
        media_devices_factory: Optional[Callable[[], MediaDevices]] = None,
    ):
        self.settings = settings or DeviceCheckSettings.from_env()
        self.media_devices_factory = media_devices_factory or (lambda: SystemMediaDevices(self.settings))
        self.active_sessions: Dict[str, Dict[str, Any]] = {}
        logger.info("✅ Device check session manager initialized")

    def start_session(self, config: InterviewConfig) -> str:
        """
        Create a controller for `config` and start its probes.
        Must be called from the event loop that will drive the checks.
        """
        session_id = uuid.uuid4().hex
        logger.info(f"🩺 Starting device check session: {session_id} ({config.job_role}, {config.interview_type.value})")

        session: Dict[str, Any] = {
            'config': config,
            'status': 'checking',
            'created_at': datetime.utcnow().isoformat(),
            'completed_at': None,
        }

        def on_complete():
            session['status'] = 'completed'
            session['completed_at'] = datetime.utcnow().isoformat()
            logger.info(f"✅ Device check {session_id} passed; candidate continuing to instructions")

        def on_back():
            session['status'] = 'abandoned'
            logger.info(f"↩️ Candidate went back from device check {session_id}")

        controller = DeviceCheckController(
            config,
            self.media_devices_factory(),
            settings=self.settings,
            on_complete=on_complete,
            on_back=on_back,
        )
        session['controller'] = controller
        self.active_sessions[session_id] = session
        controller.mount()
        return session_id

    def get_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Get active session data."""
        return self.active_sessions.get(session_id)

    def get_controller(self, session_id: str) -> Optional[DeviceCheckController]:
        session = self.active_sessions.get(session_id)
        return session['controller'] if session else None

    def get_report(self, session_id: str) -> Optional[DeviceCheckReport]:
        controller = self.get_controller(session_id)
        if controller is None:
            return None
        return build_report(controller, session_id=session_id)

    def retry_all(self, session_id: str) -> Optional[TaskHandle]:
        controller = self.get_controller(session_id)
        if controller is None:
            logger.error(f"Session {session_id} not found for retry")
            return None
        return controller.launch(controller.retry_all(), "retry-all")

    def retry_device(self, session_id: str, device: str) -> Optional[TaskHandle]:
        controller = self.get_controller(session_id)
        if controller is None:
            logger.error(f"Session {session_id} not found for {device} retry")
            return None
        if device not in ("camera", "mic", "microphone"):
            raise ValueError(f"Unknown device: {device}")
        return controller.launch(controller.retry_device(device), f"retry-{device}")

    async def play_test_sound(self, session_id: str) -> Optional[bool]:
        controller = self.get_controller(session_id)
        if controller is None:
            return None
        return await controller.play_test_sound()

    def complete(self, session_id: str) -> Optional[bool]:
        controller = self.get_controller(session_id)
        if controller is None:
            return None
        return controller.complete()

    def go_back(self, session_id: str) -> Optional[bool]:
        controller = self.get_controller(session_id)
        if controller is None:
            return None
        went_back = controller.go_back()
        self.end_session(session_id)
        return went_back

    def end_session(self, session_id: str):
        """End a device check and release its devices."""
        session = self.active_sessions.pop(session_id, None)
        if not session:
            logger.warning(f"Session {session_id} not found or already ended.")
            return

        try:
            logger.info(f"🛑 Ending device check session: {session_id}")
            session['controller'].unmount()
            logger.info(f"✅ Session {session_id} ended (status: {session.get('status')})")
        except Exception as e:
            logger.error(f"Error ending session {session_id}: {e}", exc_info=True)

    def end_all_sessions(self):
        for session_id in list(self.active_sessions):
            self.end_session(session_id)

    def get_all_active_sessions(self) -> Dict[str, Dict[str, Any]]:
        """Get all active sessions with summary info."""
        summary = {}
        for sid, session in dict(self.active_sessions).items():
            controller: DeviceCheckController = session['controller']
            state = controller.state
            summary[sid] = {
                'status': session.get('status', 'unknown'),
                'candidate_name': session['config'].candidate_name,
                'created_at': session.get('created_at'),
                'camera': state.camera.value,
                'microphone': state.microphone.value,
                'internet': state.internet.value,
                'all_checks_passed': controller.all_checks_passed,
            }
        return summary
