"""
Identity providers for machine-bound encryption keys.

An auto-encrypted vault derives its passphrase from who and where it runs
(user name, host name, domain). The provider is injected so the derivation
can be exercised without depending on the real environment.
"""

import getpass
import logging
import os
import socket
from abc import ABC, abstractmethod
from dataclasses import dataclass

logger = logging.getLogger(__name__)


class IdentityProvider(ABC):
    """Source of the stable strings a machine-bound key is derived from."""

    @abstractmethod
    def user(self) -> str:
        ...

    @abstractmethod
    def host(self) -> str:
        ...

    @abstractmethod
    def domain(self) -> str:
        ...

    def seed(self) -> str:
        """Full identity string: user:host:domain."""
        return f"{self.user()}:{self.host()}:{self.domain()}"

    def salt_seed(self) -> str:
        """Identity string used to derive the salt: user:host."""
        return f"{self.user()}:{self.host()}"


class SystemIdentityProvider(IdentityProvider):
    """Reads the identity of the current process from the OS."""

    def user(self) -> str:
        try:
            return getpass.getuser()
        except (KeyError, OSError):
            return os.environ.get('USER') or os.environ.get('USERNAME') or 'unknown'

    def host(self) -> str:
        try:
            return socket.gethostname() or 'localhost'
        except OSError as e:
            logger.warning(f"Could not read host name: {e}")
            return 'localhost'

    def domain(self) -> str:
        return os.environ.get('USERDOMAIN') or 'local'


@dataclass(frozen=True)
class StaticIdentityProvider(IdentityProvider):
    """Fixed identity, for tests and for reproducing another machine's key."""
    user_name: str
    host_name: str
    domain_name: str = 'local'

    def user(self) -> str:
        return self.user_name

    def host(self) -> str:
        return self.host_name

    def domain(self) -> str:
        return self.domain_name


__all__ = ['IdentityProvider', 'SystemIdentityProvider', 'StaticIdentityProvider']
