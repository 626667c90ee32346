"""ClinicFlow: clinic workflow and queue synchronization engine."""

__version__ = "0.1.0"
