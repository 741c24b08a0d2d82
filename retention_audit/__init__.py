"""Diagnostic Retention Compliance Auditor.

Evaluates cloud resources' diagnostic-logging configuration against a
declarative retention policy and produces auditable compliance reports
and remediation plans.
"""

__version__ = "0.1.0"
__author__ = "Cloud Governance Team"
