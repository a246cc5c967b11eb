"""
JavaScript (Node.js) execution policy
"""

from ..models import LanguagePolicy


def javascript_policy(
    node_bin: str = "node",
    run_timeout: float = 5.0,
    output_limit: int = 20000
) -> LanguagePolicy:
    """Interpreted-dynamic: no build step, node runs the source file directly"""
    return LanguagePolicy(
        language="javascript",
        extension=".js",
        run_command=[node_bin, "{source}"],
        run_timeout=run_timeout,
        output_limit=output_limit,
    )
