"""
Task subsystem.

Components:
- task_models.py: data structures (TaskState, TaskResponse, TaskRecord)
- task_future.py: TxtReaderTask, the caller-facing handle (progress/then/catch/await)
- task_scheduler.py: single-flight scheduler that dispatches tasks to the engine
"""
