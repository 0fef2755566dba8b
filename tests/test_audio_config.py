import pytest
from unittest.mock import patch
import os
import sys

# --- Add project root to path ---
script_dir = os.path.dirname(__file__)
project_root = os.path.abspath(os.path.join(script_dir, '..'))
sys.path.insert(0, project_root)
# --- End Path Setup ---

from mockmate.config.audio_config import AudioDeviceConfig

# --- Mock Device Data ---

MOCK_DEVICES = [
    {
        'name': 'Microphone (Realtek High Definition Audio)',
        'index': 0,
        'max_input_channels': 2,
        'max_output_channels': 0,
        'default_samplerate': 48000.0
    },
    {
        'name': 'Speakers (Realtek High Definition Audio)',
        'index': 1,
        'max_input_channels': 0,
        'max_output_channels': 2,
        'default_samplerate': 48000.0
    },
    {
        'name': 'USB Microphone (Blue Yeti)',
        'index': 2,
        'max_input_channels': 1,
        'max_output_channels': 0,
        'default_samplerate': 44100.0
    },
    {
        'name': 'Headset (Bluetooth Hands-Free)',
        'index': 3,
        'max_input_channels': 1,
        'max_output_channels': 1,
        'default_samplerate': 16000.0
    },
]

OUTPUT_ONLY_DEVICES = [d for d in MOCK_DEVICES if d['max_input_channels'] == 0]


# Mock DeviceList that behaves like a list
class MockDeviceList(list):
    """Mock DeviceList that can be enumerated."""
    pass

# --- Fixtures ---

@pytest.fixture
def mock_query_devices():
    """Mock sounddevice.query_devices to return mock devices."""
    with patch('sounddevice.query_devices') as mock_query:
        mock_query.return_value = MockDeviceList(MOCK_DEVICES)
        yield mock_query

@pytest.fixture
def mock_query_devices_error():
    """Mock sounddevice.query_devices to raise an error."""
    with patch('sounddevice.query_devices', side_effect=Exception("Device query failed")):
        yield

@pytest.fixture
def mock_check_input_settings():
    with patch('sounddevice.check_input_settings') as mock_check:
        yield mock_check

@pytest.fixture
def mock_check_output_settings():
    with patch('sounddevice.check_output_settings') as mock_check:
        yield mock_check


# --- Test Cases ---

class TestListAllAudioDevices:
    """Tests for AudioDeviceConfig.list_all_audio_devices"""

    def test_list_devices_success(self, mock_query_devices):
        devices = AudioDeviceConfig.list_all_audio_devices()

        assert len(devices) == len(MOCK_DEVICES)
        mock_query_devices.assert_called_once()

    def test_list_devices_shows_names_and_types(self, mock_query_devices, caplog):
        with caplog.at_level('INFO'):
            AudioDeviceConfig.list_all_audio_devices()

        assert 'AVAILABLE AUDIO DEVICES' in caplog.text
        assert 'USB Microphone' in caplog.text
        assert 'INPUT & OUTPUT' in caplog.text
        assert '44100' in caplog.text

    def test_list_devices_error_handling(self, mock_query_devices_error, caplog):
        with caplog.at_level('ERROR'):
            devices = AudioDeviceConfig.list_all_audio_devices()

        assert devices == []
        assert 'Error listing audio devices' in caplog.text


class TestFindDeviceByName:
    """Tests for AudioDeviceConfig.find_device_by_name"""

    def test_find_input_device(self, mock_query_devices):
        assert AudioDeviceConfig.find_device_by_name(['USB Microphone'], device_type="input") == 2

    def test_find_output_device(self, mock_query_devices):
        assert AudioDeviceConfig.find_device_by_name(['Speakers'], device_type="output") == 1

    def test_find_device_case_insensitive(self, mock_query_devices):
        assert AudioDeviceConfig.find_device_by_name(['blue yeti'], device_type="input") == 2

    def test_find_device_multiple_patterns(self, mock_query_devices):
        result = AudioDeviceConfig.find_device_by_name(['NonExistent', 'Headset'], device_type="both")
        assert result == 3

    def test_find_device_wrong_direction(self, mock_query_devices):
        """Output-only devices are skipped when searching for input."""
        assert AudioDeviceConfig.find_device_by_name(['Speakers'], device_type="input") is None

    def test_find_device_not_found(self, mock_query_devices, caplog):
        with caplog.at_level('WARNING'):
            result = AudioDeviceConfig.find_device_by_name(['NonExistentDevice'], device_type="input")

        assert result is None
        assert 'No input device found' in caplog.text

    def test_find_device_error_handling(self, mock_query_devices_error, caplog):
        with caplog.at_level('ERROR'):
            result = AudioDeviceConfig.find_device_by_name(['USB'], device_type="input")

        assert result is None
        assert 'Error finding device' in caplog.text


class TestResolveDevice:
    """Tests for AudioDeviceConfig.resolve_device"""

    def test_none_means_default(self):
        with patch('sounddevice.query_devices') as mock_query:
            assert AudioDeviceConfig.resolve_device(None, "input") is None
            mock_query.assert_not_called()

    def test_index_passed_through(self):
        assert AudioDeviceConfig.resolve_device(3, "output") == 3

    def test_name_resolved(self, mock_query_devices):
        assert AudioDeviceConfig.resolve_device("USB Microphone", "input") == 2

    def test_unknown_name_falls_back_to_default(self, mock_query_devices):
        assert AudioDeviceConfig.resolve_device("Studio Monitor", "output") is None


class TestHasDevice:
    """Tests for AudioDeviceConfig.has_device"""

    def test_input_present(self, mock_query_devices):
        assert AudioDeviceConfig.has_device("input") is True
        assert AudioDeviceConfig.has_device("output") is True

    def test_no_input_devices(self):
        with patch('sounddevice.query_devices', return_value=MockDeviceList(OUTPUT_ONLY_DEVICES)):
            assert AudioDeviceConfig.has_device("input") is False
            assert AudioDeviceConfig.has_device("output") is True

    def test_query_error(self, mock_query_devices_error, caplog):
        with caplog.at_level('ERROR'):
            assert AudioDeviceConfig.has_device("input") is False
        assert 'Error querying audio devices' in caplog.text


class TestVerifySampleRateSupport:
    """Tests for AudioDeviceConfig.verify_sample_rate_support"""

    def test_input_rate_supported(self, mock_check_input_settings):
        result = AudioDeviceConfig.verify_sample_rate_support(2, 48000, "input")

        assert result is True
        mock_check_input_settings.assert_called_once_with(device=2, samplerate=48000)

    def test_output_rate_supported(self, mock_check_output_settings):
        result = AudioDeviceConfig.verify_sample_rate_support(None, 44100, "output")

        assert result is True
        mock_check_output_settings.assert_called_once_with(device=None, samplerate=44100)

    def test_rate_not_supported(self, mock_check_input_settings, caplog):
        mock_check_input_settings.side_effect = Exception("Invalid sample rate")

        with caplog.at_level('WARNING'):
            result = AudioDeviceConfig.verify_sample_rate_support(3, 48000)

        assert result is False
        assert 'may not support' in caplog.text
