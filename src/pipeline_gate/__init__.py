"""Self-hosted pipeline gates: security scans, Terraform plan/destroy, test runners."""

__version__ = "0.1.0"
