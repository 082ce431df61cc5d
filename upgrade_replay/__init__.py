"""Replay captured transactions against an upgraded contract and record divergence."""

__version__ = "0.1.0"
