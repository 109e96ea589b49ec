"""Bridge layer between the lifecycle core and its external collaborators.

Each collaborator is a ``Protocol`` with one default implementation, so the
orchestrators can be driven by fakes in tests.

Modules
-------
source_fetch
    Runs r10k to materialize the Puppet code tree from the control repo.
archiver
    Deterministic tar archives, gzip compression and safe extraction.
signer
    Ed25519 detached signatures over artifact blobs (PyNaCl).
secrets
    Calls the external hieradata encrypt/decrypt commands when enabled.
storage
    Bucket + prefix scoped object store with build and agent profiles.
"""
