"""Xray server configuration as a plain data structure.

:func:`build_xray_config` is pure: the same service settings and
certificate bundle always produce an equal dict, and
:func:`serialize_xray_config` turns it into stable JSON text.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from xrayboot.certs.base import CertificateBundle
    from xrayboot.config.settings import ServiceConfig

ALPN = ("h2", "http/1.1")
SNIFF_DEST_OVERRIDE = ("http", "tls", "quic")
DOMAIN_STRATEGY = "IPIfNonMatch"

DIRECT_TAG = "direct"
BLOCK_TAG = "block"


def build_xray_config(service: ServiceConfig, bundle: CertificateBundle) -> dict[str, Any]:
    """Return the Xray JSON document for *service* as a dict."""
    return {
        "log": {
            "loglevel": "warning",
        },
        "inbounds": [
            {
                "port": service.xray_port,
                "protocol": service.protocol,
                "settings": {
                    "clients": [
                        {
                            "id": service.client_id,
                            "flow": service.flow,
                        },
                    ],
                    "decryption": "none",
                },
                "streamSettings": {
                    "network": "tcp",
                    "security": "tls",
                    "tlsSettings": {
                        "serverName": service.domain,
                        "certificates": [
                            {
                                "certificateFile": bundle.cert_file,
                                "keyFile": bundle.key_file,
                            },
                        ],
                        "alpn": list(ALPN),
                    },
                },
                "sniffing": {
                    "enabled": True,
                    "destOverride": list(SNIFF_DEST_OVERRIDE),
                },
            },
        ],
        "outbounds": [
            {
                "protocol": "freedom",
                "tag": DIRECT_TAG,
            },
            {
                "protocol": "blackhole",
                "tag": BLOCK_TAG,
            },
        ],
        "routing": {
            "domainStrategy": DOMAIN_STRATEGY,
            "rules": [
                {
                    "type": "field",
                    "protocol": ["bittorrent"],
                    "outboundTag": BLOCK_TAG,
                },
            ],
        },
    }


def serialize_xray_config(config: dict[str, Any]) -> str:
    """Serialise *config* as indented JSON with a trailing newline."""
    return json.dumps(config, indent=2, ensure_ascii=False) + "\n"
