"""
Pytest configuration and shared fixtures for inivault tests.

This module provides common fixtures for testing the vault components.
"""

import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Generator, List, Tuple

import pytest

# Add the parent directory to the path for imports
import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from inivault.config import VaultOptions
from inivault.crypto.identity import StaticIdentityProvider
from inivault.events import EventHooks, VaultEvent
from inivault.vault import IniVault


# Lowest iteration count validate() accepts; keeps key derivation fast
FAST_KDF_ITERATIONS = 1000


# ===========================================================================
# Temporary Directory Fixtures
# ===========================================================================

@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory that is cleaned up after the test."""
    tmpdir = tempfile.mkdtemp(prefix="inivault_test_")
    yield Path(tmpdir)
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def vault_path(temp_dir: Path) -> Path:
    """Provide a store path that does not exist yet."""
    return temp_dir / "settings.ini"


# ===========================================================================
# Option and Identity Fixtures
# ===========================================================================

@pytest.fixture
def fast_options() -> VaultOptions:
    """Default options with a cheap key derivation."""
    return VaultOptions(kdf_iterations=FAST_KDF_ITERATIONS)


@pytest.fixture
def static_identity() -> StaticIdentityProvider:
    """A fixed machine identity, independent of the test host."""
    return StaticIdentityProvider(user_name="alice", host_name="workstation-01", domain_name="CORP")


@pytest.fixture
def other_identity() -> StaticIdentityProvider:
    """A second machine identity."""
    return StaticIdentityProvider(user_name="bob", host_name="laptop-07", domain_name="CORP")


# ===========================================================================
# Vault Fixtures
# ===========================================================================

class EventRecorder:
    """Collects (event, args) pairs emitted by a vault."""

    def __init__(self, hooks: EventHooks):
        self.calls: List[Tuple[VaultEvent, Tuple[Any, ...]]] = []
        for event in VaultEvent:
            hooks.subscribe(event, self._make_callback(event))

    def _make_callback(self, event: VaultEvent):
        def callback(*args):
            self.calls.append((event, args))
        return callback

    def of(self, event: VaultEvent) -> List[Tuple[Any, ...]]:
        return [args for recorded, args in self.calls if recorded is event]

    def count(self, event: VaultEvent) -> int:
        return len(self.of(event))

    def reset(self) -> None:
        self.calls.clear()


@pytest.fixture
def hooks() -> EventHooks:
    """Event hooks to hand to a vault before it loads."""
    return EventHooks()


@pytest.fixture
def recorder(hooks: EventHooks) -> EventRecorder:
    """Record every event emitted through the hooks fixture."""
    return EventRecorder(hooks)


@pytest.fixture
def vault(vault_path: Path, fast_options: VaultOptions, hooks: EventHooks) -> Generator[IniVault, None, None]:
    """Provide a plaintext vault at a fresh path."""
    v = IniVault(vault_path, options=fast_options, events=hooks)
    yield v
    v.close()


@pytest.fixture
def encrypted_vault(
    vault_path: Path,
    fast_options: VaultOptions,
    static_identity: StaticIdentityProvider,
    hooks: EventHooks,
) -> Generator[IniVault, None, None]:
    """Provide a vault encrypted with the static identity's key."""
    v = IniVault(
        vault_path,
        encryption=True,
        options=fast_options,
        identity_provider=static_identity,
        events=hooks,
    )
    yield v
    v.close()


# ===========================================================================
# Pytest Configuration
# ===========================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "security: Security-specific tests")
    config.addinivalue_line("markers", "slow: Slow tests (>1s)")
