"""
Mixed Wireless/Wired Network Scenario Harness

This package builds a single Wi-Fi access segment bridged to a wired
backbone, injects CBR and bursty on/off traffic towards a wired server and
reduces the per-flow statistics into scenario-level performance metrics.
"""

__version__ = "1.0.0"
