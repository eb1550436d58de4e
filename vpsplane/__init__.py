"""
VPSPlane
========

Provider abstraction and resource cache for VPS provisioning across
cloud vendors.
"""

__version__ = "0.1.0"
