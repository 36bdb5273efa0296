import os
import sys
import logging
from logging.handlers import TimedRotatingFileHandler

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(log_dir='user/logs', level='INFO', backup_days=30):
    """Install the daily-rotating file handler and the console handler on the root logger."""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    # Remove any existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # Console handler for terminal output
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(console_handler)

    # File handler with daily rotation; console-only if the log dir is unusable
    try:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = TimedRotatingFileHandler(
            os.path.join(log_dir, 'promptbox.log'),
            when='midnight',
            interval=1,
            backupCount=backup_days
        )
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger.addHandler(file_handler)
    except OSError as e:
        root_logger.warning(f"File logging disabled, cannot use {log_dir}: {e}")

    # Quiet down Flask's werkzeug logger
    logging.getLogger('werkzeug').setLevel(logging.WARNING)

    return root_logger
