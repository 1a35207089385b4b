"""
Scheduler de tareas (APScheduler).
"""
from .task_scheduler import ScheduleResult, TaskScheduler

__all__ = ["ScheduleResult", "TaskScheduler"]
