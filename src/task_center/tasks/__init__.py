"""
Task subsystem.

Components:
- task_models.py: data structures (TaskRecord, TaskStatus, Toast, TaskRunOptions)
- task_policy.py: pure display/notification rules and the running/recent views
- task_queue.py: two-lane admission queue with a bounded heavy lane
- task_store.py: in-memory records split into active and history
- toasts.py: toast list with per-toast expiry timers
- task_runner.py: submission lifecycle, settlement and retry
- task_api.py: workspace/project operations expressed as task submissions
"""
