"""Install state machine models — per-version states on an agent."""

from __future__ import annotations

from enum import Enum


class InstallState(str, Enum):
    """Where a fetched version is in the install pipeline."""

    FETCHED = "fetched"
    UNPACKED = "unpacked"
    VERIFIED = "verified"
    INSTALLED = "installed"


# Unpacking is always allowed; it deletes the scratch directory first, so it
# doubles as the recovery path after a crash mid-extraction.
VALID_TRANSITIONS: dict[InstallState, set[InstallState]] = {
    InstallState.FETCHED: {InstallState.UNPACKED},
    InstallState.UNPACKED: {InstallState.UNPACKED, InstallState.VERIFIED},
    InstallState.VERIFIED: {InstallState.UNPACKED, InstallState.INSTALLED},
    InstallState.INSTALLED: {InstallState.UNPACKED},
}
