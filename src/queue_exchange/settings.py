"""BrokerSettings — broker connection settings resolved from the environment."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .exceptions import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Mapping

CONNECTION_STRING_VAR = "SERVICE_BUS_CONNECTION_STRING"
QUEUE_NAME_VAR = "SERVICE_BUS_QUEUE_NAME"
MAX_CONCURRENCY_VAR = "SERVICE_BUS_MAX_CONCURRENCY"


class BrokerSettings(BaseModel):
    """Where the queue lives and how hard to consume it."""

    model_config = ConfigDict(frozen=True)

    connection_string: str = Field(..., min_length=1)
    queue_name: str = Field(..., min_length=1)
    max_concurrency: int = Field(default=2, ge=1)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> BrokerSettings:
        """Build settings from environment variables.

        Raises:
            ConfigurationError: A required variable is missing or empty, or a
                value is invalid.
        """
        env = os.environ if environ is None else environ
        missing = [
            name
            for name in (CONNECTION_STRING_VAR, QUEUE_NAME_VAR)
            if not env.get(name)
        ]
        if missing:
            raise ConfigurationError(
                f"Missing required environment variable(s): {', '.join(missing)}"
            )
        values: dict[str, object] = {
            "connection_string": env[CONNECTION_STRING_VAR],
            "queue_name": env[QUEUE_NAME_VAR],
        }
        if env.get(MAX_CONCURRENCY_VAR):
            values["max_concurrency"] = env[MAX_CONCURRENCY_VAR]
        try:
            return cls.model_validate(values)
        except ValidationError as e:
            raise ConfigurationError(str(e)) from e

    def __repr__(self) -> str:
        return (
            f"BrokerSettings(queue_name={self.queue_name!r}, "
            f"max_concurrency={self.max_concurrency}, connection_string='***')"
        )
