"""Client configuration.

ClientConfig is a frozen dataclass: immutable after creation,
IDE-autocompletable, validated on construction.
"""

from dataclasses import dataclass

from perch.errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class ClientConfig:
    """Test client configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = ClientConfig(timeout=5.0, max_redirects=3)
    """

    # Whole redirect chain, in seconds
    timeout: float = 3600.0

    # Redirects
    follow_redirects: bool = True
    max_redirects: int = 20
    reapply_cookies_on_redirect: bool = True  # Also for hops the caller does not customize

    # Requests
    default_method: str = "GET"

    def __post_init__(self) -> None:
        if self.timeout <= 0:
            msg = f"timeout must be positive, got {self.timeout!r}"
            raise ConfigurationError(msg)
        if self.max_redirects < 0:
            msg = f"max_redirects must not be negative, got {self.max_redirects!r}"
            raise ConfigurationError(msg)
        if not self.default_method:
            msg = "default_method must not be empty"
            raise ConfigurationError(msg)
