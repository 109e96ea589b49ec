"""Pupistry: content-addressed, signed Puppet code artifacts.

Builds an artifact from the Puppet control repository, versions it by
checksum, signs it, publishes it to a shared object store, and installs it
on agents only after its signature verifies.
"""

__version__ = "0.5.0"
__description__ = "Build, sign, publish and safely install Puppet code artifacts"

from pupistry.config import PupistryConfig, load_config
from pupistry.core.orchestrator import Lifecycle

__all__ = ["Lifecycle", "PupistryConfig", "load_config", "__version__"]
