"""Knockwise territory geometry core: overlap checks, block subdivision and location lookup"""

__version__ = "0.1.0"
