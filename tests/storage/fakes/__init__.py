# Fake implementations for testing

from .fake_registry_client import FakeRegistryClient

__all__ = ["FakeRegistryClient"]
