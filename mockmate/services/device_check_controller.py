# mockmate/services/device_check_controller.py
"""
Device Check Controller
Probes network, camera and microphone before an interview, meters the microphone
level and runs the speaker test. Every failure becomes state plus a manual retry path.
"""
import asyncio
import logging
from typing import Callable, Coroutine, Dict, List, Optional, Set, Union

import numpy as np

from mockmate.config.device_config import DeviceCheckSettings
from mockmate.core.tasks import TaskHandle, spawn
from mockmate.models.device_check_schemas import (
    CheckStatus,
    DeviceCheckState,
    InterviewConfig,
    MediaErrorCategory,
    MediaRequestMode,
)
from mockmate.services.audio_meter import AudioLevelMeter
from mockmate.services.media_devices import (
    MediaAcquisition,
    MediaDevices,
    MediaTrack,
    classify_media_error,
    describe_media_error,
)
from mockmate.services.tone import synthesize_tone

logger = logging.getLogger(__name__)


class SessionResources:
    """Everything the controller holds open. Released together by DeviceCheckController.teardown()."""

    def __init__(self):
        self.acquisition: Optional[MediaAcquisition] = None
        self.preview: Optional[MediaAcquisition] = None
        self.audio_meter: Optional[AudioLevelMeter] = None
        self.monitor: Optional[TaskHandle] = None


class DeviceCheckController:
    """Owns the state and device resources of one system check."""

    VIDEO_CONSTRAINTS = {"width": {"ideal": 640}, "height": {"ideal": 480}}

    def __init__(
        self,
        config: InterviewConfig,
        media_devices: MediaDevices,
        settings: Optional[DeviceCheckSettings] = None,
        on_complete: Optional[Callable[[], None]] = None,
        on_back: Optional[Callable[[], None]] = None,
    ):
        self.config = config
        self.media = media_devices
        self.settings = settings or DeviceCheckSettings.from_env()
        self.on_complete = on_complete
        self.on_back = on_back
        self.state = DeviceCheckState()
        self.resources = SessionResources()
        self.mounted = False
        self._closed = False
        self._tasks: Set[TaskHandle] = set()
        self._generation = 0  # bumped by full retries and unmount; older results are discarded
        self._network_generation = 0
        self._pending_devices: Dict[str, int] = {}  # device kind -> generation of the request holding it

    # --- Aggregate status ---

    @property
    def all_checks_passed(self) -> bool:
        return self.state.all_checks_passed

    @property
    def has_failures(self) -> bool:
        return self.state.has_failures

    @property
    def is_checking(self) -> bool:
        return self.state.is_checking

    @property
    def closed(self) -> bool:
        return self._closed

    # --- Lifecycle ---

    def launch(self, coro: Coroutine, name: str) -> TaskHandle:
        """Run `coro` as a task that unmount() will cancel."""
        handle = spawn(coro, name)
        self._tasks.add(handle)
        handle.add_done_callback(self._tasks.discard)
        return handle

    def mount(self):
        """Start the initial probes. Must be called from a running event loop."""
        if self.mounted:
            logger.warning("Device check already mounted.")
            return
        self.mounted = True
        logger.info(f"🩺 Starting system check for {self.config.candidate_name}")
        self.launch(self.start_network_probe(), "network-probe")
        self.launch(self._initial_media_request(), "initial-media-request")

    async def _initial_media_request(self):
        await asyncio.sleep(self.settings.initial_media_delay)
        await self.request_media_permissions(MediaRequestMode.ALL)

    def unmount(self):
        """Cancel pending work and release every device."""
        if self._closed:
            return
        self._closed = True
        self._generation += 1
        for handle in list(self._tasks):
            handle.cancel()
        self._tasks.clear()
        self.teardown()
        logger.info("✅ System check closed, devices released.")

    def teardown(self):
        """Stop monitoring, close the audio context, stop all tracks and clear the preview."""
        self._stop_audio_monitoring()
        if self.resources.acquisition is not None:
            self.resources.acquisition.stop()
            self.resources.acquisition = None
        self.resources.preview = None

    def _is_stale(self, generation: int) -> bool:
        return self._closed or generation != self._generation

    # --- Network ---

    async def start_network_probe(self):
        self._network_generation += 1
        generation = self._network_generation
        self.state.internet = CheckStatus.CHECKING
        self.state.internet_error = None

        await asyncio.sleep(self.settings.network_settle_delay)
        try:
            online = await asyncio.to_thread(self.media.is_online)
        except Exception as e:
            logger.error(f"Error reading connectivity state: {e}", exc_info=True)
            online = False

        if self._closed or generation != self._network_generation:
            return
        if online:
            self.state.internet = CheckStatus.PASSED
            logger.info("🌐 Internet connection OK")
        else:
            self.state.internet = CheckStatus.FAILED
            self.state.internet_error = MediaErrorCategory.OFFLINE
            logger.warning("🌐 No internet connection detected")

    # --- Status helpers ---

    def _set_camera(self, status: CheckStatus, category: Optional[MediaErrorCategory] = None):
        self.state.camera = status
        if status == CheckStatus.FAILED:
            category = category or MediaErrorCategory.UNKNOWN
            self.state.camera_error = category
            self.state.camera_error_detail = describe_media_error(category)
        else:
            self.state.camera_error = None
            self.state.camera_error_detail = ""

    def _set_mic(self, status: CheckStatus, category: Optional[MediaErrorCategory] = None):
        self.state.microphone = status
        if status == CheckStatus.FAILED:
            category = category or MediaErrorCategory.UNKNOWN
            self.state.mic_error = category
            self.state.mic_error_detail = describe_media_error(category)
        else:
            self.state.mic_error = None
            self.state.mic_error_detail = ""
        if status != CheckStatus.PASSED:
            self._stop_audio_monitoring()

    def _bind_preview(self):
        acquisition = self.resources.acquisition
        if acquisition is not None and any(t.live for t in acquisition.get_video_tracks()):
            self.resources.preview = acquisition
        else:
            self.resources.preview = None

    def _merge_tracks(self, tracks: List[MediaTrack]):
        if self.resources.acquisition is None:
            self.resources.acquisition = MediaAcquisition()
        for track in tracks:
            self.resources.acquisition.add_track(track)

    def _drop_tracks(self, kind: str):
        """Stop and remove every held track of one kind, leaving the other device alone."""
        acquisition = self.resources.acquisition
        if acquisition is None:
            return
        for track in acquisition.get_tracks():
            if track.kind == kind:
                track.stop()
                acquisition.remove_track(track)

    # --- Camera & microphone ---

    async def request_media_permissions(self, mode: Union[MediaRequestMode, str] = MediaRequestMode.ALL):
        """
        Acquire camera and/or microphone.

        ALL releases everything first and tries one combined request; any rejection
        falls back to independent camera and microphone requests. CAMERA and MIC only
        touch their own device, so a device that already passed keeps its tracks. A device
        retry is ignored while another request for that device, full or single, is in flight.
        """
        mode = MediaRequestMode(mode)
        if self._closed:
            logger.warning(f"Ignoring media request ({mode.value}) on a closed system check.")
            return

        if mode == MediaRequestMode.ALL:
            self._generation += 1
            self.teardown()
            self._set_camera(CheckStatus.CHECKING)
            self._set_mic(CheckStatus.CHECKING)
            kinds = ("video", "audio")
        else:
            kind = "video" if mode == MediaRequestMode.CAMERA else "audio"
            if kind in self._pending_devices:
                logger.info(f"A {kind} request is already in progress; ignoring retry.")
                return
            self._drop_tracks(kind)
            if mode == MediaRequestMode.CAMERA:
                self._set_camera(CheckStatus.CHECKING)
                self._bind_preview()
            else:
                self._set_mic(CheckStatus.CHECKING)
            kinds = (kind,)
        generation = self._generation
        # A full request owns both devices until it resolves
        for kind in kinds:
            self._pending_devices[kind] = generation

        try:
            if mode == MediaRequestMode.ALL and await self._try_combined_request(generation):
                return

            requests = []
            if mode in (MediaRequestMode.ALL, MediaRequestMode.CAMERA):
                requests.append(self._acquire_camera(generation))
            if mode in (MediaRequestMode.ALL, MediaRequestMode.MIC):
                requests.append(self._acquire_microphone(generation))
            await asyncio.gather(*requests)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Unexpected error in media request: {e}", exc_info=True)
            if mode == MediaRequestMode.ALL and not self._is_stale(generation):
                self._set_camera(CheckStatus.FAILED)
                self._set_mic(CheckStatus.FAILED)
        finally:
            for kind in kinds:
                if self._pending_devices.get(kind) == generation:
                    del self._pending_devices[kind]

    async def _try_combined_request(self, generation: int) -> bool:
        try:
            acquisition = await asyncio.to_thread(
                self.media.get_user_media, video=self.VIDEO_CONSTRAINTS, audio=True
            )
        except Exception as e:
            logger.warning(f"Combined request failed, falling back to separate requests: {e}")
            return False

        if self._is_stale(generation):
            acquisition.stop()
            return True

        self.resources.acquisition = acquisition
        self._bind_preview()
        self._set_camera(CheckStatus.PASSED)
        self._set_mic(CheckStatus.PASSED)
        self.setup_audio_monitoring(acquisition)
        logger.info("✅ Camera and microphone ready (combined request)")
        return True

    async def _acquire_camera(self, generation: int):
        try:
            video = await asyncio.to_thread(self.media.get_user_media, video=True)
        except Exception as e:
            if self._is_stale(generation):
                return
            category = classify_media_error(e)
            logger.error(f"❌ Camera failed ({category.value}): {e}")
            self._set_camera(CheckStatus.FAILED, category)
            return

        if self._is_stale(generation):
            video.stop()
            return
        self._merge_tracks(video.get_video_tracks())
        self._bind_preview()
        self._set_camera(CheckStatus.PASSED)
        logger.info("📷 Camera ready")

    async def _acquire_microphone(self, generation: int):
        try:
            audio = await asyncio.to_thread(self.media.get_user_media, audio=True)
        except Exception as e:
            if self._is_stale(generation):
                return
            category = classify_media_error(e)
            logger.error(f"❌ Microphone failed ({category.value}): {e}")
            self._set_mic(CheckStatus.FAILED, category)
            return

        if self._is_stale(generation):
            audio.stop()
            return
        self._merge_tracks(audio.get_audio_tracks())
        self._set_mic(CheckStatus.PASSED)
        self.setup_audio_monitoring(self.resources.acquisition)
        logger.info("🎤 Microphone ready")

    # --- Level metering ---

    def setup_audio_monitoring(self, acquisition: Optional[MediaAcquisition]) -> Optional[TaskHandle]:
        """(Re)start the level loop on the newest live audio track of `acquisition`."""
        self._stop_audio_monitoring()
        if acquisition is None:
            return None
        tracks = [t for t in acquisition.get_audio_tracks() if t.live]
        if not tracks:
            logger.warning("No live audio track to monitor.")
            return None

        try:
            meter = AudioLevelMeter(tracks[-1])
        except Exception as e:
            logger.error(f"Failed to setup audio monitoring: {e}", exc_info=True)
            return None

        self.resources.audio_meter = meter
        self.resources.monitor = spawn(self._monitor_levels(meter), "audio-level-monitor")
        return self.resources.monitor

    async def _monitor_levels(self, meter: AudioLevelMeter):
        while not meter.closed:
            try:
                level = meter.sample_level()
            except Exception as e:
                logger.error(f"Audio level sampling stopped: {e}", exc_info=True)
                if self.resources.audio_meter is meter:
                    self.state.audio_level = 0
                return
            if self.state.microphone == CheckStatus.PASSED and self.resources.audio_meter is meter:
                self.state.audio_level = round(min(100.0, max(0.0, level)), 1)
            await asyncio.sleep(self.settings.level_sample_interval)

    def _stop_audio_monitoring(self):
        if self.resources.monitor is not None:
            self.resources.monitor.cancel()
            self.resources.monitor = None
        if self.resources.audio_meter is not None:
            self.resources.audio_meter.close()
            self.resources.audio_meter = None
        self.state.audio_level = 0

    # --- Speaker ---

    async def play_test_sound(self) -> bool:
        """Play the test tone once. Returns False if a tone is already playing or playback failed."""
        if self.state.is_playing_sound:
            logger.info("Test sound already playing; ignoring.")
            return False
        self.state.is_playing_sound = True
        try:
            samples = synthesize_tone(self.settings.sample_rate)
            await asyncio.to_thread(self.media.play_audio, samples, self.settings.sample_rate)
        except Exception as e:
            logger.error(f"🔇 Audio playback failed ({MediaErrorCategory.PLAYBACK_FAILED.value}): {e}")
            return False
        finally:
            self.state.is_playing_sound = False
        self.state.speaker_tested = True
        logger.info("🔊 Speaker test completed")
        return True

    # --- Retries ---

    async def retry_all(self):
        logger.info("🔄 Re-checking all systems...")
        self.state.speaker_tested = False
        self.state.audio_level = 0
        await asyncio.gather(
            self.start_network_probe(),
            self.request_media_permissions(MediaRequestMode.ALL),
        )

    async def retry_device(self, which: Union[MediaRequestMode, str]):
        mode = MediaRequestMode("mic" if which == "microphone" else which)
        if mode == MediaRequestMode.ALL:
            raise ValueError("retry_device expects 'camera' or 'mic'; use retry_all for a full re-check")
        logger.info(f"🔄 Retrying {mode.value} permission...")
        await self.request_media_permissions(mode)

    # --- Caller callbacks ---

    def complete(self) -> bool:
        """Invoke on_complete, but only once every check has passed."""
        if not self.all_checks_passed:
            logger.warning("Continue requested before all checks passed.")
            return False
        if self.on_complete:
            self.on_complete()
        return True

    def go_back(self) -> bool:
        if not self.on_back:
            return False
        self.on_back()
        return True

    # --- Preview ---

    def preview_frame(self) -> Optional[np.ndarray]:
        preview = self.resources.preview
        if preview is None:
            return None
        tracks = [t for t in preview.get_video_tracks() if t.live]
        if not tracks:
            return None
        return tracks[-1].read_frame()
