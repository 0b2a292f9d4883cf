"""xrayboot: bootstrap orchestrator for the nginx + Xray container.

Resolves configuration from the environment, makes sure a TLS
certificate is present (issuing one through acme.sh when it is not),
renders the Xray and nginx configurations, registers the renewal job,
refreshes routing datasets and finally hands the process over to
supervisord.
"""

__version__ = "1.0.0"
