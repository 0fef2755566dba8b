# mockmate/core/log_config.py
import logging.config
import os
from pathlib import Path

# Create a 'logs' directory at the project root if it doesn't exist
log_dir = Path(os.getenv("MOCKMATE_LOG_DIR", Path(__file__).resolve().parents[2] / 'logs'))
log_dir.mkdir(parents=True, exist_ok=True)

LOGGING_CONFIG = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'default': {
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            'datefmt': '%Y-%m-%d %H:%M:%S',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'default',
            'level': 'INFO',
            'stream': 'ext://sys.stdout',
        },
        'info_file_handler': {
            'class': 'logging.handlers.RotatingFileHandler',
            'filename': os.path.join(log_dir, 'info.log'),
            'maxBytes': 10485760,  # 10 MB
            'backupCount': 5,
            'formatter': 'default',
            'level': 'INFO',
            'encoding': 'utf-8',
        },
        'error_file_handler': {
            'class': 'logging.handlers.RotatingFileHandler',
            'filename': os.path.join(log_dir, 'error.log'),
            'maxBytes': 10485760,  # 10 MB
            'backupCount': 5,
            'formatter': 'default',
            'level': 'ERROR',
            'encoding': 'utf-8',
        },
    },
    'loggers': {
        # PortAudio host API probing is chatty on some Linux setups
        'sounddevice': {
            'level': 'WARNING',
            'handlers': ['console'],
            'propagate': False,
        },
    },
    'root': {
        'level': 'INFO',
        'handlers': ['console', 'info_file_handler', 'error_file_handler'],
    },
}

def setup_logging():
    """Applies the logging configuration."""
    logging.config.dictConfig(LOGGING_CONFIG)
