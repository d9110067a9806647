"""Channel configuration.

Environment overrides:
    BRIDGECALL_DEFAULT_TIMEOUT  Default call deadline in seconds
                                (empty, "none" or zero = wait indefinitely)
    BRIDGECALL_CHANNEL_NAME     Name used in log lines
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass

ENV_DEFAULT_TIMEOUT = "BRIDGECALL_DEFAULT_TIMEOUT"
ENV_CHANNEL_NAME = "BRIDGECALL_CHANNEL_NAME"


@dataclass
class ChannelConfig:
    """Configuration for a Channel.

    `default_timeout` applies to calls that do not pass their own timeout.
    None means a call waits until it is answered or the channel closes.
    """

    default_timeout: float | None = None
    name: str = "channel"

    def __post_init__(self) -> None:
        if self.default_timeout is not None and self.default_timeout <= 0:
            raise ValueError(f"default_timeout must be positive, got {self.default_timeout}")

    @classmethod
    def from_env(cls) -> ChannelConfig:
        """Build a config from BRIDGECALL_* environment variables."""
        return cls(
            default_timeout=_parse_timeout(os.getenv(ENV_DEFAULT_TIMEOUT)),
            name=os.getenv(ENV_CHANNEL_NAME) or "channel",
        )


def _parse_timeout(value: str | None) -> float | None:
    if value is None:
        return None
    value = value.strip().lower()
    if value in ("", "none"):
        return None
    try:
        timeout = float(value)
    except ValueError:
        raise ValueError(f"Invalid {ENV_DEFAULT_TIMEOUT}: {value!r}") from None
    if timeout == 0:
        return None
    if timeout < 0 or not math.isfinite(timeout):
        raise ValueError(f"Invalid {ENV_DEFAULT_TIMEOUT}: {value!r}")
    return timeout
