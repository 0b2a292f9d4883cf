"""Bootstrap driver package for xrayboot.

Public API::

    from xrayboot.app import create_bootstrap
"""

from xrayboot.app.bootstrap import Bootstrap, create_bootstrap, log_connection_info

__all__ = ["Bootstrap", "create_bootstrap", "log_connection_info"]
