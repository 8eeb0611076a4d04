"""
Logging Utilities for Caller Trust Lab.

Centralizes logging setup so the optimizer CLI and any embedding program get
the same format and handlers, driven by the [Logging] section of config.ini.

Besides the root level, [Logging] may set `package_level`, the level of the
`caller_trust` logger that every module logger of the package hangs from.
This allows e.g. DEBUG output of the simulation and optimizer while the root
(and any third-party library) stays at INFO.

Key Functions:
- setup_global_logging: Configures the root and package loggers from an INI file or defaults.
"""
import configparser
import logging
import os
from typing import List, Optional

from settings import LOGGING_SETTINGS

DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
# DEBUG adds module and line number
DEBUG_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(lineno)d - %(message)s'


def _level_from_name(level_name: str, fallback: Optional[int], option: str) -> Optional[int]:
    level = logging.getLevelName(level_name.strip().upper())
    if isinstance(level, int):
        return level
    fallback_text = f"Using {logging.getLevelName(fallback)}" if fallback is not None else "Ignoring it"
    logging.warning(f"Unknown log level '{level_name}' for [Logging] {option}. {fallback_text}.")
    return fallback


def setup_global_logging(
    config_path: str = LOGGING_SETTINGS['DEFAULT_CONFIG_PATH'],
    default_level: int = logging.INFO,
    log_to_file: bool = True,
    default_log_file_path: str = LOGGING_SETTINGS['DEFAULT_LOG_FILE'],
    package_level: Optional[int] = None,
) -> logging.Logger:
    '''
    Configures the root logger and the package logger.

    Reads level, package_level, log_to_file, log_file_path and log_format from
    the [Logging] section of `config_path`, with fallbacks to the provided
    defaults. Without a package level the package logger inherits the root level.

    Returns:
        logging.Logger: The package logger.
    '''
    parser = configparser.ConfigParser()
    log_level = default_level
    configured_package_level = package_level
    configured_log_file_path = default_log_file_path
    enable_file_logging = log_to_file
    log_format = DEFAULT_LOG_FORMAT

    if os.path.exists(config_path):
        try:
            parser.read(config_path)
            if parser.has_section('Logging'):
                level_name = parser.get('Logging', 'level', fallback=None)
                if level_name:
                    log_level = _level_from_name(level_name, default_level, 'level')
                package_level_name = parser.get('Logging', 'package_level', fallback=None)
                if package_level_name:
                    configured_package_level = _level_from_name(package_level_name, package_level, 'package_level')

                configured_log_file_path = parser.get('Logging', 'log_file_path', fallback=default_log_file_path)
                enable_file_logging = parser.getboolean('Logging', 'log_to_file', fallback=log_to_file)
                log_format = parser.get('Logging', 'log_format', fallback=DEFAULT_LOG_FORMAT)
        except (configparser.Error, ValueError) as e:
            logging.warning(f"Error reading logging configuration from {config_path}: {e}. Using defaults.")

    debug_enabled = logging.DEBUG in (log_level, configured_package_level)
    chosen_format_string = DEBUG_LOG_FORMAT if debug_enabled else log_format

    handlers: List[logging.Handler] = []
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(chosen_format_string))
    handlers.append(console_handler)

    if enable_file_logging:
        try:
            log_dir = os.path.dirname(configured_log_file_path)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
            file_handler = logging.FileHandler(configured_log_file_path, mode='a')
            file_handler.setFormatter(logging.Formatter(chosen_format_string))
            handlers.append(file_handler)
        except OSError as e:
            logging.error(f"Could not configure file logging to {configured_log_file_path}: {e}")

    logging.basicConfig(level=log_level, handlers=handlers, force=True)

    package_logger = logging.getLogger(LOGGING_SETTINGS['PACKAGE_LOGGER'])
    # NOTSET defers to the root level; also clears a level left by an earlier setup
    package_logger.setLevel(configured_package_level if configured_package_level is not None else logging.NOTSET)

    file_logging_status = 'Disabled'
    if enable_file_logging:
        if any(isinstance(h, logging.FileHandler) for h in logging.getLogger().handlers):
            file_logging_status = f'Enabled to {configured_log_file_path}'
        else:
            file_logging_status = 'Failed to enable'

    package_logger.info(
        f"Global logging configured. Level: {logging.getLevelName(log_level)}. "
        f"Package level: {logging.getLevelName(package_logger.getEffectiveLevel())}. "
        f"File logging: {file_logging_status}."
    )
    return package_logger
