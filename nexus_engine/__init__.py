"""
Nexus Exposure Engine
=====================

Economic nexus exposure tracking for multi-state e-commerce sellers:
aggregates imported orders by state and measurement window, compares
them to each state's nexus thresholds and ranks the results.

Modules:
    thresholds       - State economic nexus threshold registry
    orders           - Imported order records and order sources
    aggregator       - Rolling 12-month / calendar-year sales aggregation
    evaluator        - Per-state exposure classification
    exposure         - Ranked exposure report assembly
    alerts           - Threshold-crossing alerts
    service          - Report service and HTTP response shaping
    report_generator - JSON/CSV/text export
    cli              - Command-line interface
"""

__version__ = "1.0.0"

from nexus_engine.thresholds import (
    MeasurementPeriod,
    StateThreshold,
    ThresholdRegistry,
    default_registry,
)
from nexus_engine.orders import CsvOrderSource, InMemoryOrderSource, Order
from nexus_engine.aggregator import ExposureTotals, aggregate_exposure_totals
from nexus_engine.evaluator import ExposureStatus, evaluate_exposure
from nexus_engine.exposure import ExposureReport, StateExposure, build_exposure_report
from nexus_engine.alerts import NexusAlert, NexusAlertTracker
from nexus_engine.service import ExposureService
from nexus_engine.report_generator import ReportGenerator

__all__ = [
    "MeasurementPeriod",
    "StateThreshold",
    "ThresholdRegistry",
    "default_registry",
    "Order",
    "InMemoryOrderSource",
    "CsvOrderSource",
    "ExposureTotals",
    "aggregate_exposure_totals",
    "ExposureStatus",
    "evaluate_exposure",
    "StateExposure",
    "ExposureReport",
    "build_exposure_report",
    "NexusAlert",
    "NexusAlertTracker",
    "ExposureService",
    "ReportGenerator",
]
