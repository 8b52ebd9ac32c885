"""Scheduled maintenance jobs and the command-line interface."""

from dexstore.maintenance.runner import MaintenanceRunner, MaintenanceSummary, build_store

__all__ = ["MaintenanceRunner", "MaintenanceSummary", "build_store"]
