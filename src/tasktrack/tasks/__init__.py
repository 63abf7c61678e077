"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskState, ReactionEvent)
- db.py: the shared SQLite connection + schema
- task_store.py / state_store.py: storage for tasks and workflow states
- state_catalog.py: in-memory lookup of states and the transition graph
- transitions.py: the reaction-driven state machine
- reaction_handler.py: per-event boundary (access checks, notifications, errors)
- reconcile.py: channel history backfill
"""
