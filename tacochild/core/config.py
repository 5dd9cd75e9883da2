"""
Registry configuration for tacochild.

Defines the minimum authorization, the collaborator addresses of a
persisted registry, and on-disk locations. Values come from defaults,
then a .env file, then the process environment (TACO_* variables).
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import dotenv_values

from tacochild.crypto import keccak256, to_checksum_address
from tacochild.utils.validation import validate_address, validate_amount

ENV_PREFIX = "TACO_"


def dev_address(label: str) -> str:
    """Deterministic development address for a named role."""
    return to_checksum_address(keccak256(f"tacochild:{label}".encode())[-20:])


@dataclass
class RegistryConfig:
    """Registry-wide configuration parameters"""

    # Economic parameters
    minimum_authorization: int = 40_000 * 10**18  # Smallest authorization that counts

    # Collaborator addresses (fixed so a persisted registry can be reopened)
    registry_address: str = field(default_factory=lambda: dev_address("registry"))
    root_application_address: str = field(default_factory=lambda: dev_address("root"))
    coordinator_address: str = field(default_factory=lambda: dev_address("coordinator"))
    updater_owner_address: str = field(default_factory=lambda: dev_address("owner"))

    # Paths
    data_dir: Path = Path("data")
    log_dir: Path = Path("logs")
    db_name: str = "registry.db"

    def __post_init__(self):
        """Validate and normalize values"""
        valid, err = validate_amount(self.minimum_authorization, "minimum_authorization")
        if not valid or self.minimum_authorization == 0:
            raise ValueError(f"Invalid minimum_authorization: {err or 'must be > 0'}")

        for name in (
            "registry_address",
            "root_application_address",
            "coordinator_address",
            "updater_owner_address",
        ):
            value = getattr(self, name)
            valid, err = validate_address(value, name, allow_zero=False)
            if not valid:
                raise ValueError(err)
            setattr(self, name, to_checksum_address(value))

        self.data_dir = Path(self.data_dir).expanduser()
        self.log_dir = Path(self.log_dir).expanduser()

    def ensure_dirs(self):
        """Create necessary directories"""
        self.data_dir.mkdir(exist_ok=True, parents=True)
        self.log_dir.mkdir(exist_ok=True, parents=True)


_FIELDS = {
    "MINIMUM_AUTHORIZATION": ("minimum_authorization", int),
    "REGISTRY_ADDRESS": ("registry_address", str),
    "ROOT_APPLICATION_ADDRESS": ("root_application_address", str),
    "COORDINATOR_ADDRESS": ("coordinator_address", str),
    "UPDATER_OWNER_ADDRESS": ("updater_owner_address", str),
    "DATA_DIR": ("data_dir", Path),
    "LOG_DIR": ("log_dir", Path),
    "DB_NAME": ("db_name", str),
}


def load_config(env_file: Optional[str] = None, **overrides) -> RegistryConfig:
    """
    Load configuration from a .env file and the environment.

    Args:
        env_file: Optional path to a .env file
        **overrides: Explicit field values, applied last

    Returns:
        RegistryConfig instance
    """
    values = {}
    if env_file:
        values.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
    values.update({k: v for k, v in os.environ.items() if k.startswith(ENV_PREFIX)})

    kwargs = {}
    for suffix, (name, cast) in _FIELDS.items():
        raw = values.get(ENV_PREFIX + suffix)
        if raw is None or raw == "":
            continue
        try:
            kwargs[name] = cast(raw)
        except ValueError:
            raise ValueError(f"Invalid value for {ENV_PREFIX + suffix}: {raw!r}") from None

    kwargs.update({k: v for k, v in overrides.items() if v is not None})
    return RegistryConfig(**kwargs)
