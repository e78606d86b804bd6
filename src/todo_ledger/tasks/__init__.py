"""
Task engine.

Components:
- task_models.py: data structures (Task, TrashEntry) and small value helpers
- recurrence.py: rule parser and next-occurrence stepping
- task_store.py: SQLite repository (tasks, task_topics, topic_notes)
- trash.py: JSON snapshot directory used for delete/restore/purge
- topic_notes.py: notes keyed by topic name
- views.py: sorting, filtering, search and the reminder report
"""
