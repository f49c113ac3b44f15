"""Territory boundary validation"""
from .boundary_validator import BoundaryValidator

__all__ = ["BoundaryValidator"]
