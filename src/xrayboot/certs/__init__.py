"""Certificate lifecycle: issuance client, bootstrap listener, manager.

Exports the abstract collaborators, the bundle dataclass, and the
production implementations.
"""

from xrayboot.certs.acme_sh import AcmeShClient
from xrayboot.certs.base import BootstrapListener, CertificateBundle, IssuanceClient
from xrayboot.certs.listener import NginxListener
from xrayboot.certs.manager import CertificateManager

__all__ = [
    "AcmeShClient",
    "BootstrapListener",
    "CertificateBundle",
    "CertificateManager",
    "IssuanceClient",
    "NginxListener",
]
