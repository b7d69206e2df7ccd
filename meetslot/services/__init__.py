"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .scheduler import CalendarRepository, SchedulerService

__all__ = ["CalendarRepository", "SchedulerService"]
