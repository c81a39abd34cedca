# src/core/jobs/__init__.py
"""
Домен заявок.
Модели, машина состояний и сервис жизненного цикла заявки.
"""

from src.core.jobs.models import Job, JobCreateDTO, JobView
from src.core.jobs.repository import JobRepository
from src.core.jobs.schedule import parse_schedule
from src.core.jobs.state_machine import JobStateMachine
from src.core.jobs.service import JobService

__all__ = [
    "Job",
    "JobCreateDTO",
    "JobView",
    "JobRepository",
    "parse_schedule",
    "JobStateMachine",
    "JobService",
]
