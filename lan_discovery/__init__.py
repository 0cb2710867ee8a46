"""
LAN Discovery Engine

A Python module for discovering the devices on a local /24 network: host
liveness probing with TTL-based OS guessing, concurrent TCP port scanning and
multi-channel device identity resolution with confidence scoring.
"""

__version__ = "1.0.0"
__author__ = "Network Discovery Team"
