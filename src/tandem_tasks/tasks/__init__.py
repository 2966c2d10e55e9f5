"""
Task subsystem.

Components:
- task_models.py: records (Task, TaskStatus, Snapshot, ValidateResult)
- task_errors.py: error taxonomy (ValidationError, NotFoundError, TransportError)
- task_events.py: lifecycle events + snapshot diffing
- task_store.py: authoritative in-memory store (approval state machine)
- task_api.py: JSON request handling on the store side
- transport.py: in-process transport used by clients
- snapshot_cache.py: JSON-file / in-memory snapshot persistence
- sync_reconciler.py: client cache, optimistic updates and polling
"""
