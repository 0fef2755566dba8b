# tests/test_log_config.py
import logging

# --- Setup Path ---
import sys, os
script_dir = os.path.dirname(__file__)
project_root = os.path.abspath(os.path.join(script_dir, '..'))
sys.path.insert(0, project_root)
# --- End Path Setup ---

from mockmate.core.log_config import LOGGING_CONFIG


class TestLoggingConfig:

    def test_logger_overrides_change_the_root_level(self):
        """Every per-logger entry must differ from what it would inherit from root."""
        root_level = LOGGING_CONFIG['root']['level']
        for name, entry in LOGGING_CONFIG['loggers'].items():
            assert entry.get('level', root_level) != root_level or 'handlers' in entry, name

    def test_sounddevice_is_quieted(self):
        entry = LOGGING_CONFIG['loggers']['sounddevice']
        assert entry['level'] == 'WARNING'
        assert entry['propagate'] is False

    def test_mockmate_modules_inherit_root(self):
        assert not any(name.startswith('mockmate') for name in LOGGING_CONFIG['loggers'])

    def test_handlers(self):
        handlers = LOGGING_CONFIG['handlers']
        assert handlers['error_file_handler']['level'] == 'ERROR'
        assert handlers['info_file_handler']['filename'].endswith('info.log')
        assert logging.getLevelName(LOGGING_CONFIG['root']['level']) == logging.INFO
