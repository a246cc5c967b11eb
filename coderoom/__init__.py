"""
CodeRoom: collaborative code rooms with multi-language execution

Subpackages:
- rooms: room registry, presence tracking and document sync
- execution: per-language policies, workspaces and the job scheduler
"""

__version__ = "0.1.0"
