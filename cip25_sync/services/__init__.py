"""
Services for the CIP-25 sync.

- core/: clients for external services (Kupo)
- sync/: the synchronization engine
"""
