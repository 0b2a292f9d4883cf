"""Configuration subsystem for xrayboot.

Public API::

    from xrayboot.config import load_settings

    settings = load_settings(os.environ)
    settings.service.domain          # typed access
    settings.paths.cert_dir
"""

from xrayboot.config.loader import load_settings
from xrayboot.config.settings import (
    AcmeSettings,
    BootstrapSettings,
    GeodataSettings,
    ListenerSettings,
    LoggingSettings,
    PathSettings,
    RenewalSettings,
    ServiceConfig,
    SupervisorSettings,
    build_settings,
)

__all__ = [
    "AcmeSettings",
    "BootstrapSettings",
    "GeodataSettings",
    "ListenerSettings",
    "LoggingSettings",
    "PathSettings",
    "RenewalSettings",
    "ServiceConfig",
    "SupervisorSettings",
    "build_settings",
    "load_settings",
]
