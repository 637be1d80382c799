"""
Dependency injection for Monnayeur.
"""

from monnayeur.di.container import (
    DIContainer,
    get_container,
    initialize_container,
    override_container,
    shutdown_container,
)

__all__ = [
    "DIContainer",
    "get_container",
    "initialize_container",
    "override_container",
    "shutdown_container",
]
