"""
Simulation module for the scenario harness.

This module runs a scenario and reduces its flow statistics into a report.
"""

from .collector import FlowRecord, FlowStatsCollector
from .report import AggregateReport, ReportAggregator
from .runner import ScenarioResult, ScenarioRunner

__all__ = ['ScenarioRunner', 'ScenarioResult', 'FlowStatsCollector', 'FlowRecord',
           'ReportAggregator', 'AggregateReport']
