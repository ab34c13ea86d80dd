from typing import Callable, Any, List, Optional

from loguru import logger as log


class KVSampleError(Exception):
    """Base class for every error raised by kvsample itself."""


class ConfigurationError(KVSampleError):
    """
    A required configuration value is absent or a settings file is unreadable.

    Raised before any remote call is attempted, so nothing needs cleaning up.

    Attributes:
        missing (List[str]): Names of the environment variables that were empty or unset.
    """

    def __init__(self, message: str, missing: Optional[List[str]] = None):
        super().__init__(message)
        self.missing = list(missing or [])

    @classmethod
    def for_missing(cls, missing: List[str]) -> "ConfigurationError":
        return cls(
            f"please set/export the following environment variables: {','.join(missing)}",
            missing=missing,
        )


class AuthenticationError(KVSampleError):
    """
    The identity provider rejected a credential exchange.

    Attributes:
        audience (str): Resource the token was requested for.
        error (str): Error code returned by the identity provider.
        error_description (str): Human-readable reason, if the provider sent one.
    """

    def __init__(self, audience: str, error: str = None, error_description: str = None):
        self.audience = audience
        self.error = error or "unknown_error"
        self.error_description = error_description or ""
        msg = f"[Identity] Token request for '{audience}' failed: {self.error}"
        if self.error_description:
            msg += f" ({self.error_description})"
        super().__init__(msg)


class CleanupError(KVSampleError):
    """One failed teardown call. Collected on the workflow result, never raised out of it."""

    def __init__(self, resource: str, name: str, cause: BaseException):
        self.resource = resource
        self.name = name
        self.cause = cause
        super().__init__(f"failed to delete {resource} '{name}': {cause}")


class ErrorHandling:
    @staticmethod
    def isolate(fn: Callable[[], Any], label: str = "operation") -> Optional[Exception]:
        """
        Runs a zero-argument callable once and hands back its exception instead of raising.

        Used at the cleanup boundary, where one failed deletion must not stop the next.
        There is no retry: the callable is invoked exactly once.

        Args:
            fn (Callable[[], Any]): The call to run (wrap arguments in a lambda).
            label (str): Label used in the log line on failure.

        Returns:
            Optional[Exception]: None on success, otherwise the exception `fn` raised.
        """
        if not callable(fn):
            raise TypeError(f"[{label}] Expected a callable, got {type(fn).__name__}")

        try:
            fn()
        except Exception as e:
            log.warning(f"[{label}] Encountered error during resource cleanup: {e}")
            return e
        return None


isolate = ErrorHandling.isolate
