"""
Vault Options - behaviour flags for a vault handle.

Options can be built in code, loaded from a YAML file, or read from
INIVAULT_* environment variables:

    auto_save: true
    auto_save_interval: 3
    auto_backup: true
    auto_add: true
    use_checksum: true
    save_on_dispose: true
    write_header: false
    kdf_iterations: 100000

Usage:
    options = load_options("/etc/myapp/vault.yaml")
    vault = IniVault("settings.ini", options=options)
"""

import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from inivault.constants import Crypto, ENV_PREFIX, Permissions, parse_bool
from inivault.exceptions import OptionsError

logger = logging.getLogger(__name__)


@dataclass
class VaultOptions:
    """Options for a vault handle."""
    # Persist after mutations
    auto_save: bool = True

    # Mutations between saves; 0 and 1 both mean every mutation
    auto_save_interval: int = 0

    # Keep the previous file generation at <path>.backup
    auto_backup: bool = True

    # get_value() inserts the default for missing keys
    auto_add: bool = True

    # Append a SHA-256 trailer and verify it on load
    use_checksum: bool = True

    # Save when the vault is closed
    save_on_dispose: bool = True

    # Prefix files with a comment line identifying the format
    write_header: bool = False

    # PBKDF2 iterations for key derivation
    kdf_iterations: int = field(default_factory=lambda: Crypto.KDF_ITERATIONS)

    # Permission bits for written files
    file_mode: int = int(Permissions.SECURE_FILE)

    def validate(self) -> 'VaultOptions':
        """Raise OptionsError for out-of-range values; return self."""
        if self.auto_save_interval < 0:
            raise OptionsError(
                f"auto_save_interval must be >= 0, got {self.auto_save_interval}"
            )
        if self.kdf_iterations < Crypto.KDF_ITERATIONS_MIN:
            raise OptionsError(
                f"kdf_iterations must be >= {Crypto.KDF_ITERATIONS_MIN}, "
                f"got {self.kdf_iterations}"
            )
        if not 0 <= self.file_mode <= 0o777:
            raise OptionsError(f"file_mode out of range: {oct(self.file_mode)}")
        return self

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'VaultOptions':
        """Create from a dictionary; unknown keys are rejected."""
        known = {f.name: f for f in fields(cls)}
        unknown = set(data) - set(known)
        if unknown:
            raise OptionsError(f"Unknown option(s): {', '.join(sorted(unknown))}")

        kwargs: Dict[str, Any] = {}
        for name, value in data.items():
            kwargs[name] = _coerce(name, value, known[name].type)
        return cls(**kwargs).validate()

    @classmethod
    def from_environment(cls, base: Optional['VaultOptions'] = None) -> 'VaultOptions':
        """Overlay INIVAULT_<OPTION> environment variables on base."""
        values = (base or cls()).to_dict()
        for f in fields(cls):
            env_name = f"{ENV_PREFIX}{f.name.upper()}"
            raw = os.environ.get(env_name)
            if raw is None:
                continue
            values[f.name] = _coerce(f.name, raw, f.type)
            logger.info(f"Using {env_name}={values[f.name]} (override)")
        return cls(**values).validate()


def _coerce(name: str, value: Any, type_hint: Any) -> Any:
    target = type_hint if isinstance(type_hint, type) else {
        'bool': bool, 'int': int,
    }.get(str(type_hint), str)

    if target is bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            try:
                return parse_bool(value)
            except ValueError:
                pass
        raise OptionsError(f"Option {name} must be a boolean, got {value!r}")

    if target is int:
        if isinstance(value, bool):
            raise OptionsError(f"Option {name} must be an integer, got {value!r}")
        try:
            return int(value, 0) if isinstance(value, str) else int(value)
        except (TypeError, ValueError):
            raise OptionsError(f"Option {name} must be an integer, got {value!r}")

    return value


def load_options(path: Union[str, Path]) -> VaultOptions:
    """
    Load options from a YAML file.

    An empty file yields the defaults. The file may hold the options at the
    top level or under an 'inivault' key.
    """
    path = Path(path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise OptionsError(f"Could not read options file: {e}", path=str(path)) from e
    except yaml.YAMLError as e:
        raise OptionsError(f"Invalid YAML in options file: {e}", path=str(path)) from e

    if data is None:
        return VaultOptions()
    if not isinstance(data, dict):
        raise OptionsError("Options file must contain a mapping", path=str(path))
    if isinstance(data.get('inivault'), dict):
        data = data['inivault']

    logger.debug(f"Loaded options from {path}")
    return VaultOptions.from_dict(data)


def save_options(options: VaultOptions, path: Union[str, Path]) -> None:
    """Write options to a YAML file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        yaml.dump(options.to_dict(), f, default_flow_style=False, sort_keys=False)


__all__ = ['VaultOptions', 'load_options', 'save_options']
