"""Configuration rendering for nginx and Xray."""

from xrayboot.render.renderer import ConfigRenderer, RenderedConfig, ensure_mime_types
from xrayboot.render.xray import build_xray_config, serialize_xray_config

__all__ = [
    "ConfigRenderer",
    "RenderedConfig",
    "build_xray_config",
    "ensure_mime_types",
    "serialize_xray_config",
]
