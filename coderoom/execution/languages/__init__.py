"""
Language-specific execution policies
"""
from typing import Dict

from ..models import LanguagePolicy
from .cpp import cpp_policy
from .javascript import javascript_policy
from .python import python_policy


def default_policies(settings=None) -> Dict[str, LanguagePolicy]:
    """
    Build the policy table, keyed by language name

    Args:
        settings: Optional Settings overriding binaries and limits
    """
    if settings is None:
        policies = [javascript_policy(), python_policy(), cpp_policy()]
    else:
        policies = [
            javascript_policy(
                node_bin=settings.node_bin,
                run_timeout=settings.run_timeout,
                output_limit=settings.output_limit,
            ),
            python_policy(
                python_bin=settings.python_bin,
                run_timeout=settings.run_timeout,
                output_limit=settings.output_limit,
            ),
            cpp_policy(
                cxx_bin=settings.cxx_bin,
                compile_timeout=settings.compile_timeout,
                run_timeout=settings.run_timeout,
                output_limit=settings.output_limit,
            ),
        ]
    return {policy.language: policy for policy in policies}


__all__ = ['default_policies', 'cpp_policy', 'javascript_policy', 'python_policy']
