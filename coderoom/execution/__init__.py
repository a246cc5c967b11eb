"""
Code execution for JavaScript, Python and C++
"""

from .job import ExecutionJob
from .languages import default_policies
from .models import ExecutionResult, JobState, KillReason, LanguagePolicy
from .scheduler import ExecutionScheduler

__all__ = [
    'ExecutionJob',
    'ExecutionResult',
    'ExecutionScheduler',
    'JobState',
    'KillReason',
    'LanguagePolicy',
    'default_policies',
]
