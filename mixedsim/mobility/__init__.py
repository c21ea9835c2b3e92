"""
Mobility module for the wireless segment.

This module implements fixed grid placement and bounded random walks.
"""

from .mobility_models import (ConstantPositionModel, GridPlacement, MobilityManager, MobilityModel,
                              RandomWalk2dModel, RandomWalkPolicy, Rectangle)

__all__ = ['GridPlacement', 'RandomWalkPolicy', 'Rectangle', 'MobilityModel',
           'ConstantPositionModel', 'RandomWalk2dModel', 'MobilityManager']
