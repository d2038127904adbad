"""Connection configuration: deployment environments and settings.

Endpoints for the named environments and the connection settings can be
supplied through ``RXSTREAM_*`` environment variables, so deployments do not
need code changes.
"""

import os
from dataclasses import dataclass
from enum import Enum

from .mechanism import StreamConfigError
from .utils import mask_secret

ENV_PREFIX = "RXSTREAM_"

# Built-in endpoints; the remote environments have none and must be configured.
_DEFAULT_URLS: dict[str, str] = {
    "local": "ws://localhost:8888",
}


class Environment(Enum):
    """Named deployments a connection can target."""

    PROD = "prod"
    RC = "rc"
    DEV = "dev"
    LOCAL = "local"

    @property
    def env_var(self) -> str:
        return f"{ENV_PREFIX}{self.name}_URL"

    @property
    def base_url(self) -> str:
        """Endpoint of this environment, or ``""`` when none is configured."""
        return os.environ.get(self.env_var, _DEFAULT_URLS.get(self.value, "")).strip()

    @classmethod
    def parse(cls, name: str) -> "Environment":
        try:
            return cls(name.strip().lower())
        except ValueError:
            valid = ", ".join(e.value for e in cls)
            raise StreamConfigError(
                f"Unknown environment '{name}' (expected one of: {valid})"
            ) from None


@dataclass(frozen=True)
class StreamSettings:
    """Everything needed to build a :class:`StreamConnection`.

    Attributes:
        base_url: Endpoint URL.
        user_id: Identity sent in the registration envelope.
        user_token: Credential sent in the registration envelope.
        debug: Emit DEBUG logs (console output when no provider is given).
        path: Request path on the endpoint.
        force_websockets: Transport preference forwarded in TransportOptions.
        registration_timeout: Seconds to wait for ``registerOk``.
        reconnect_delay: Seconds between an abnormal close and the retry.
    """

    base_url: str
    user_id: str
    user_token: str
    debug: bool = False
    path: str = "/engine.io"
    force_websockets: bool = False
    registration_timeout: float = 5.0
    reconnect_delay: float = 5.0

    def __repr__(self) -> str:
        return (
            f"<{self.__class__.__name__} "
            f"base_url='{self.base_url}', "
            f"user_id='{self.user_id}', "
            f"user_token='{mask_secret(self.user_token)}', "
            f"debug={self.debug}>"
        )


def _parse_bool(key: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off", ""):
        return False
    raise StreamConfigError(f"Invalid boolean for {key}: {value!r}")


def _parse_seconds(key: str, value: str) -> float:
    try:
        seconds = float(value)
    except ValueError:
        raise StreamConfigError(f"Invalid number for {key}: {value!r}") from None
    if seconds <= 0:
        raise StreamConfigError(f"{key} must be positive, got {seconds}")
    return seconds


def load_settings_from_env(environ: dict[str, str] | None = None) -> StreamSettings:
    """Build :class:`StreamSettings` from ``RXSTREAM_*`` variables.

    ``RXSTREAM_BASE_URL`` wins over ``RXSTREAM_ENV``; when neither is set the
    ``PROD`` environment endpoint is used. Emptiness of the URL, user ID and
    token is checked later, when the connection is constructed.

    Raises:
        StreamConfigError: a variable holds an unparsable value.
    """
    env = os.environ if environ is None else environ

    def _get(suffix: str, default: str = "") -> str:
        return env.get(f"{ENV_PREFIX}{suffix}", default)

    base_url = _get("BASE_URL").strip()
    if not base_url:
        environment = Environment.parse(_get("ENV", Environment.PROD.value))
        base_url = env.get(
            environment.env_var, _DEFAULT_URLS.get(environment.value, "")
        ).strip()

    return StreamSettings(
        base_url=base_url,
        user_id=_get("USER_ID"),
        user_token=_get("USER_TOKEN"),
        debug=_parse_bool(f"{ENV_PREFIX}DEBUG", _get("DEBUG", "false")),
        path=_get("PATH", "/engine.io"),
        force_websockets=_parse_bool(
            f"{ENV_PREFIX}FORCE_WEBSOCKETS", _get("FORCE_WEBSOCKETS", "false")
        ),
        registration_timeout=_parse_seconds(
            f"{ENV_PREFIX}REGISTRATION_TIMEOUT", _get("REGISTRATION_TIMEOUT", "5")
        ),
        reconnect_delay=_parse_seconds(
            f"{ENV_PREFIX}RECONNECT_DELAY", _get("RECONNECT_DELAY", "5")
        ),
    )
