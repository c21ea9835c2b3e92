"""
Utility modules for the scenario harness.

Configuration file handling lives here; plotting is in
``mixedsim.utils.visualization`` and pulls in matplotlib on import.
"""

from .config_parser import ConfigParser

__all__ = ['ConfigParser']
