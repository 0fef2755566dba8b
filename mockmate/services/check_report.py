# mockmate/services/check_report.py
"""
Builds the client-facing view of a system check: check rows, labels and hints.
"""
from typing import Optional

from mockmate.models.device_check_schemas import (
    CheckItem,
    CheckStatus,
    DeviceCheckReport,
)
from mockmate.services.device_check_controller import DeviceCheckController

INTERNET_MESSAGES = {
    CheckStatus.PASSED: "Connected • Strong signal",
    CheckStatus.CHECKING: "Testing connection...",
}
INTERNET_FAILED_MESSAGE = "No connection detected"
DEVICE_CHECKING_MESSAGE = "Requesting access..."
DEVICE_FALLBACK_MESSAGE = "Check permissions"
RETRY_LABEL = "Retry Permission"

PERMISSION_HINT = (
    "Please allow camera/microphone access in your browser settings "
    "(look for the lock icon in the address bar)."
)

GUIDELINES = [
    "Find a quiet, well-lit space with stable internet.",
    "Use earphones for better audio quality.",
    "Dress neatly. Sit upright with your face clearly visible.",
    "Give detailed responses for better evaluation.",
    "Don't exit full-screen or switch tabs during the interview.",
]


def _internet_message(status: CheckStatus) -> str:
    return INTERNET_MESSAGES.get(status, INTERNET_FAILED_MESSAGE)


def _device_message(status: CheckStatus, ready_message: str, error_detail: str) -> str:
    if status == CheckStatus.PASSED:
        return ready_message
    if status == CheckStatus.CHECKING:
        return DEVICE_CHECKING_MESSAGE
    return error_detail or DEVICE_FALLBACK_MESSAGE


def header_label(controller: DeviceCheckController) -> str:
    if controller.all_checks_passed:
        return "All systems ready"
    if controller.is_checking:
        return "Checking..."
    return "Issues detected"


def continue_label(controller: DeviceCheckController) -> str:
    if controller.all_checks_passed:
        return "Continue to Instructions"
    if controller.is_checking:
        return "Checking systems..."
    return "Fix issues to continue"


def build_report(controller: DeviceCheckController, session_id: Optional[str] = None) -> DeviceCheckReport:
    state = controller.state
    camera_failed = state.camera == CheckStatus.FAILED
    mic_failed = state.microphone == CheckStatus.FAILED

    checks = [
        CheckItem(
            id="internet",
            title="Internet Connection",
            status=state.internet,
            message=_internet_message(state.internet),
            error=state.internet_error,
        ),
        CheckItem(
            id="camera",
            title="Camera",
            status=state.camera,
            message=_device_message(state.camera, "Camera ready", state.camera_error_detail),
            error=state.camera_error,
            can_retry=camera_failed,
            retry_label=RETRY_LABEL if camera_failed else None,
        ),
        CheckItem(
            id="microphone",
            title="Microphone",
            status=state.microphone,
            message=_device_message(state.microphone, "Microphone ready", state.mic_error_detail),
            error=state.mic_error,
            can_retry=mic_failed,
            retry_label=RETRY_LABEL if mic_failed else None,
        ),
    ]

    mic_passed = state.microphone == CheckStatus.PASSED
    return DeviceCheckReport(
        session_id=session_id,
        candidate_name=controller.config.candidate_name,
        header_label=header_label(controller),
        checks=checks,
        audio_level=state.audio_level if mic_passed else 0.0,
        show_audio_meter=mic_passed,
        speaker_tested=state.speaker_tested,
        is_playing_sound=state.is_playing_sound,
        speaker_label="Tested" if state.speaker_tested else "Test Sound",
        camera_preview_available=controller.resources.preview is not None,
        all_checks_passed=controller.all_checks_passed,
        continue_enabled=controller.all_checks_passed,
        continue_label=continue_label(controller),
        permission_hint=PERMISSION_HINT if controller.has_failures else None,
        guidelines=list(GUIDELINES),
    )
