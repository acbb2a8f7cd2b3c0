"""
Test Fixtures Package

Shared test utilities and helpers for consistent testing across all modules.
"""

from .in_memory_redis import InMemoryPipeline, InMemoryRedis

__all__ = ["InMemoryPipeline", "InMemoryRedis"]
