"""Settings for the scene graph package.

Precedence (highest to lowest):

1. Init kwargs (tests/overrides)
2. Environment variables, e.g. ``SCENEGRAPH_DEBUG_CHECKS=1`` or
   ``SCENEGRAPH_LOGGING__LEVEL=DEBUG``
3. ``.env`` file
4. Defaults in this module
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_HANDLER_NAME = "scenegraph"


class LoggingSettings(BaseModel):
    level: Literal["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"] = "WARNING"
    format: str = "%(asctime)-20s %(name)-28s %(levelname)-8s: %(message)s"


class SceneGraphSettings(BaseSettings):
    """Process-wide configuration for scene graphs."""

    model_config = SettingsConfigDict(
        env_prefix="SCENEGRAPH_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )

    debug_checks: bool = Field(
        False,
        description=(
            "Walk the whole tree after every structural change and raise "
            "InvariantViolation if it is not a well-formed tree."
        ),
    )
    logging: LoggingSettings = LoggingSettings()


@lru_cache(maxsize=1)
def get_settings(**overrides: Any) -> SceneGraphSettings:
    """Cached accessor for process-wide settings.

    `overrides` are init kwargs and take the highest precedence.
    """
    return SceneGraphSettings(**overrides)


def configure_logging(settings: SceneGraphSettings | None = None) -> logging.Logger:
    """Attach a stream handler to the package logger according to settings.

    Calling this again replaces the handler installed by the previous call.
    """
    if settings is None:
        settings = get_settings()
    logger = logging.getLogger("scenegraph")
    for handler in list(logger.handlers):
        if handler.get_name() == _HANDLER_NAME:
            logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(settings.logging.format))
    logger.addHandler(handler)
    logger.setLevel(settings.logging.level)
    return logger
