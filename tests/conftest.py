"""Shared pytest fixtures for lazywire tests."""

import pytest

from lazywire.container import Container
from lazywire.dependencies import DependenciesExtractor
from lazywire.lifetimes import Lifetime
from lazywire.proxies.manager import ProxiesManager


@pytest.fixture()
def container() -> Container:
    """Default container with auto-registration enabled."""
    return Container(register_if_missing=True)


@pytest.fixture()
def container_no_autoregister() -> Container:
    """Container with register_if_missing=False."""
    return Container(register_if_missing=False)


@pytest.fixture()
def container_singleton() -> Container:
    """Container with lifetime singleton as default."""
    return Container(
        register_if_missing=True,
        autoregister_default_lifetime=Lifetime.SINGLETON,
    )


@pytest.fixture()
def dependencies_extractor() -> DependenciesExtractor:
    """DependenciesExtractor instance."""
    return DependenciesExtractor()


@pytest.fixture()
def proxies_manager() -> ProxiesManager:
    """ProxiesManager with an empty template cache."""
    return ProxiesManager()
