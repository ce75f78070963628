"""
System dependency management.
"""

from phpforge.dependencies.resolver import DependencyResolver

__all__ = ["DependencyResolver"]
