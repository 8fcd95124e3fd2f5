"""Deploy, tear down and inspect a Kubernetes monitoring stack."""

__version__ = '0.1.0'
