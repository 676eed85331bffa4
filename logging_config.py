#!/usr/bin/env python3
"""
Comprehensive Logging Configuration for the laundry coordinator
Provides detailed logging for debugging machine, waitlist and state store activity
"""

import os
import shutil
import logging
import logging.handlers
from datetime import datetime
from typing import Optional

# Define the log directory to be a fixed 'latest_log'
LOG_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'logs', 'latest_log')

# Component loggers whose level follows PRODUCTION_MODE
COMPONENT_LOGGERS = [
    'LaundryAPI',
    'EventDispatcher',
    'MachineReservationService',
    'MachineRegistry',
    'TimerEngine',
    'WaitlistManager',
    'WaitlistNotifier',
    'NotificationDispatcher',
    'IssueTracker',
    'UsageSink',
    'StateSweeper',
    'LifecycleManager',
    'ErrorHandler',
]

# Loggers that also write to the dedicated state store log
STATE_STORE_LOGGERS = ['SharedStateStore', 'MachineRegistry', 'StateSweeper']


def _production_mode(value: Optional[bool]) -> bool:
    if value is not None:
        return value
    return os.getenv('PRODUCTION_MODE', 'true').lower() == 'true'


def setup_logging(production_mode: Optional[bool] = None, log_dir: str = LOG_DIR) -> None:
    """
    Set up logging with a console handler and rotating file handlers.
    Previous logs in ``log_dir`` are cleared before a new session starts.
    """
    production = _production_mode(production_mode)

    # Clear previous logs in the directory
    if os.path.exists(log_dir):
        for filename in os.listdir(log_dir):
            file_path = os.path.join(log_dir, filename)
            try:
                if os.path.isfile(file_path) or os.path.islink(file_path):
                    os.unlink(file_path)
                elif os.path.isdir(file_path):
                    shutil.rmtree(file_path)
            except OSError as e:
                print(f'Failed to delete {file_path}. Reason: {e}')

    os.makedirs(log_dir, exist_ok=True)

    main_log_file = os.path.join(log_dir, 'laundry.log')
    error_log_file = os.path.join(log_dir, 'laundry_errors.log')
    state_store_log_file = os.path.join(log_dir, 'state_store.log')

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.WARNING if production else logging.DEBUG)
    root_logger.handlers = []

    # Detailed formatter with file, line, and function information
    detailed_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d in %(funcName)s()] - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    console_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.WARNING if production else logging.INFO)
    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    main_file_handler = logging.handlers.RotatingFileHandler(
        main_log_file,
        maxBytes=10*1024*1024,  # 10MB
        backupCount=5,
        encoding='utf-8'
    )
    main_file_handler.setLevel(logging.INFO)
    main_file_handler.setFormatter(detailed_formatter)
    root_logger.addHandler(main_file_handler)

    error_file_handler = logging.handlers.RotatingFileHandler(
        error_log_file,
        maxBytes=5*1024*1024,  # 5MB
        backupCount=5,
        encoding='utf-8'
    )
    error_file_handler.setLevel(logging.ERROR)
    error_file_handler.setFormatter(detailed_formatter)
    root_logger.addHandler(error_file_handler)

    # Dedicated log for snapshot loads, repairs and saves
    state_store_handler = logging.handlers.RotatingFileHandler(
        state_store_log_file,
        maxBytes=20*1024*1024,  # 20MB
        backupCount=5,
        encoding='utf-8'
    )
    state_store_handler.setLevel(logging.INFO if production else logging.DEBUG)
    state_store_handler.setFormatter(detailed_formatter)
    for name in STATE_STORE_LOGGERS:
        logging.getLogger(name).addHandler(state_store_handler)
    logging.getLogger('SharedStateStore').setLevel(logging.INFO if production else logging.DEBUG)

    component_level = logging.INFO if production else logging.DEBUG
    for name in COMPONENT_LOGGERS:
        logging.getLogger(name).setLevel(component_level)

    # Reduce noise from external libraries
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('httpcore').setLevel(logging.WARNING)
    logging.getLogger('telegram').setLevel(logging.INFO)
    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)

    root_logger.info("="*80)
    root_logger.info(f"Laundry Logging Initialized - {datetime.now()}")
    root_logger.info(f"Production Mode: {'ON' if production else 'OFF'}")
    root_logger.info(f"Log Level: {'WARNING+' if production else 'DEBUG+'}")
    root_logger.info(f"Main log: {main_log_file}")
    root_logger.info(f"Error log: {error_log_file}")
    root_logger.info(f"State store log: {state_store_log_file}")
    root_logger.info("="*80)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the given name

    Args:
        name: Logger name (usually the component class name)

    Returns:
        logging.Logger instance
    """
    return logging.getLogger(name)
