"""
StegFile Configuration.

Runtime settings for the encode/decode manager and the logging setup used
by the command line interface. Nothing here is read from the environment or
persisted; callers build a StegoConfig explicitly.
"""

import logging
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .payload import RecordFormat

LOGGER_NAME = "stegfile"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass
class StegoConfig:
    """
    Settings for :class:`stegfile.steganography.StegFileManager`.

    Attributes:
        record_format: Wire format written on encode
        output_prefix: Prefix of the default output file name
        max_key_length: Longest accepted key
        log_level: Level name applied by :func:`configure_logging`
    """

    record_format: RecordFormat = RecordFormat.FRAMED
    output_prefix: str = "encoded_"
    max_key_length: int = 8
    log_level: str = "WARNING"

    def __post_init__(self):
        if not 1 <= self.max_key_length <= 255:
            raise ValueError("max_key_length must be between 1 and 255")

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['record_format'] = self.record_format.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StegoConfig":
        """
        Build a config from a plain dictionary, e.g. parsed JSON.

        Unknown keys are rejected so typos do not pass silently.
        """
        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        values = dict(data)
        if 'record_format' in values and not isinstance(values['record_format'], RecordFormat):
            values['record_format'] = RecordFormat(values['record_format'])
        return cls(**values)


def configure_logging(
    level: Union[int, str] = logging.WARNING,
    log_file: Optional[Union[str, Path]] = None,
) -> logging.Logger:
    """
    Attach handlers to the package logger.

    Args:
        level: Logging level or level name.
        log_file: Optional file that receives the same records.

    Returns:
        The configured ``stegfile`` logger. Calling this again replaces the
        handlers instead of stacking them.
    """
    logger = logging.getLogger(LOGGER_NAME)
    if isinstance(level, str):
        level = getattr(logging, level.upper())
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)
    stream = logging.StreamHandler()
    stream.setFormatter(formatter)
    logger.addHandler(stream)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(str(path), encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
