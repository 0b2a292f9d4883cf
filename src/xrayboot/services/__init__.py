"""Post-certificate stages: renewal job, routing datasets, supervisor handoff."""

from xrayboot.services.geodata import GeodataRefresher
from xrayboot.services.renewal import RenewalRegistrar, build_cron_line
from xrayboot.services.supervisor import SupervisorLauncher

__all__ = [
    "GeodataRefresher",
    "RenewalRegistrar",
    "SupervisorLauncher",
    "build_cron_line",
]
