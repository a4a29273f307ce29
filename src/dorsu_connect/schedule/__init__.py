"""
Schedule Module - Academic calendar events.
===========================================

- service: Event loading, filtering and conversion to search hits
"""

from dorsu_connect.schedule.service import (
    ScheduleService,
    exam_boost,
    get_schedule_service,
    semester_label,
)

__all__ = [
    "ScheduleService",
    "exam_boost",
    "get_schedule_service",
    "semester_label",
]
