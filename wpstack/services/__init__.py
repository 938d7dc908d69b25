"""
Wrappers around the external tools a deployment depends on.
"""

from wpstack.services.certs import CertificateProvisioner, CertificateState, CertificateStatus
from wpstack.services.compose import ComposeProject
from wpstack.services.cron import CronTable

__all__ = [
    "CertificateProvisioner",
    "CertificateState",
    "CertificateStatus",
    "ComposeProject",
    "CronTable",
]
