# mockmate/models/device_check_schemas.py
from enum import Enum
from pydantic import BaseModel, Field
from typing import List, Optional


class CheckStatus(str, Enum):
    PENDING = "pending"
    CHECKING = "checking"
    PASSED = "passed"
    FAILED = "failed"


class MediaErrorCategory(str, Enum):
    """Categories shown to the candidate when a check fails."""
    PERMISSION_DENIED = "permission-denied"
    DEVICE_NOT_FOUND = "device-not-found"
    DEVICE_IN_USE = "device-in-use"
    UNKNOWN = "unknown"
    OFFLINE = "offline"
    PLAYBACK_FAILED = "playback-failed"


class MediaRequestMode(str, Enum):
    ALL = "all"
    MIC = "mic"
    CAMERA = "camera"


class InterviewType(str, Enum):
    TECHNICAL = "technical"
    BEHAVIORAL = "behavioral"
    HR = "hr"
    SYSTEM_DESIGN = "system-design"


class ExperienceLevel(str, Enum):
    ENTRY = "Entry"
    MID = "Mid"
    SENIOR = "Senior"
    LEAD = "Lead"


class InterviewConfig(BaseModel):
    """Interview configuration chosen on the setup screen (read-only here)"""
    candidate_name: str = Field(..., min_length=1, description="Name shown over the camera preview")
    job_role: str = Field(..., description="Role being interviewed for")
    job_description: Optional[str] = Field(None)
    experience_level: ExperienceLevel = Field(ExperienceLevel.MID)
    interview_type: InterviewType = Field(InterviewType.TECHNICAL)
    company_name: Optional[str] = None
    skills: Optional[str] = None
    duration: int = Field(30, gt=0, le=180, description="Interview length in minutes")

    model_config = {"frozen": True}


class DeviceCheckState(BaseModel):
    """Live state of one system check. Mutated only by its controller."""
    camera: CheckStatus = CheckStatus.PENDING
    microphone: CheckStatus = CheckStatus.PENDING
    internet: CheckStatus = CheckStatus.PENDING
    speaker_tested: bool = False
    is_playing_sound: bool = False
    audio_level: float = Field(0.0, ge=0, le=100)
    camera_error_detail: str = ""
    mic_error_detail: str = ""
    camera_error: Optional[MediaErrorCategory] = None
    mic_error: Optional[MediaErrorCategory] = None
    internet_error: Optional[MediaErrorCategory] = None

    model_config = {"validate_assignment": True}

    @property
    def all_checks_passed(self) -> bool:
        return (
            self.camera == CheckStatus.PASSED
            and self.microphone == CheckStatus.PASSED
            and self.internet == CheckStatus.PASSED
        )

    @property
    def has_failures(self) -> bool:
        return CheckStatus.FAILED in (self.camera, self.microphone, self.internet)

    @property
    def is_checking(self) -> bool:
        return CheckStatus.CHECKING in (self.camera, self.microphone, self.internet)


class CheckItem(BaseModel):
    """One row of the system check list"""
    id: str
    title: str
    status: CheckStatus
    message: str
    error: Optional[MediaErrorCategory] = None
    can_retry: bool = False
    retry_label: Optional[str] = None


class DeviceCheckReport(BaseModel):
    """Everything a client needs to render the system check screen"""
    session_id: Optional[str] = None
    candidate_name: str
    header_label: str
    checks: List[CheckItem]
    audio_level: float = Field(..., ge=0, le=100)
    show_audio_meter: bool
    speaker_tested: bool
    is_playing_sound: bool
    speaker_label: str
    camera_preview_available: bool
    all_checks_passed: bool
    continue_enabled: bool
    continue_label: str
    permission_hint: Optional[str] = None
    guidelines: List[str]
