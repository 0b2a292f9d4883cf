"""Error taxonomy for the bootstrap sequence.

Every failure a stage can report derives from :class:`BootstrapError`.
The ``fatal`` flag tells the driver whether to abort the whole startup
(non-zero exit) or to log a warning and carry on with the next stage.
"""

from __future__ import annotations


class BootstrapError(Exception):
    """Base class for all bootstrap failures.

    Parameters
    ----------
    detail:
        Human-readable description of the failure.
    fatal:
        Whether the failure aborts the bootstrap.

    """

    fatal: bool = True

    def __init__(self, detail: str, *, fatal: bool | None = None) -> None:
        self.detail = detail
        if fatal is not None:
            self.fatal = fatal
        super().__init__(detail)


# ---------------------------------------------------------------------------
# Pre-flight (configuration)
# ---------------------------------------------------------------------------


class MissingRequiredInput(BootstrapError):
    """A required input (e.g. ``DOMAIN``) is unset or empty."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"{field} is required but was not provided")


class ConfigValidationError(BootstrapError):
    """Raised when one or more inputs fail validation."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        body = "\n".join(f"  - {e}" for e in errors)
        super().__init__(f"Configuration validation failed:\n{body}")


# ---------------------------------------------------------------------------
# Certificates
# ---------------------------------------------------------------------------


class IssuanceError(Exception):
    """Raised by an issuance client when an acme.sh invocation fails.

    Parameters
    ----------
    detail:
        Human-readable description of the failure.
    returncode:
        Exit status of the client process, if it ran at all.

    """

    def __init__(self, detail: str, *, returncode: int | None = None) -> None:
        self.detail = detail
        self.returncode = returncode
        super().__init__(detail)


class CertificateIssuanceFailed(BootstrapError):
    """The certificate could not be obtained or installed."""


class ListenerError(BootstrapError):
    """The bootstrap listener could not be started or stopped."""


class TemplateRenderError(BootstrapError):
    """A configuration document could not be rendered."""


class LaunchError(BootstrapError):
    """The process supervisor could not be executed."""


# ---------------------------------------------------------------------------
# Non-fatal
# ---------------------------------------------------------------------------


class AuxiliaryFetchFailed(BootstrapError):
    """A routing dataset could not be downloaded."""

    fatal = False

    def __init__(self, dataset: str, detail: str) -> None:
        self.dataset = dataset
        super().__init__(f"Failed to download {dataset}: {detail}")


class RenewalJobInstallFailed(BootstrapError):
    """The periodic renewal job could not be installed."""

    fatal = False
