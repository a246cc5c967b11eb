"""
Python execution policy
"""

from ..models import LanguagePolicy


def python_policy(
    python_bin: str = "python3",
    run_timeout: float = 5.0,
    output_limit: int = 20000
) -> LanguagePolicy:
    """Interpreted-script: no build step"""
    return LanguagePolicy(
        language="python",
        extension=".py",
        # -u so output reaches the pipes as it is produced
        run_command=[python_bin, "-u", "{source}"],
        run_timeout=run_timeout,
        output_limit=output_limit,
    )
