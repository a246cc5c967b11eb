"""
C++ execution policy
"""

from ..models import LanguagePolicy


def cpp_policy(
    cxx_bin: str = "g++",
    compile_timeout: float = 10.0,
    run_timeout: float = 5.0,
    output_limit: int = 20000
) -> LanguagePolicy:
    """
    Compiled-native: g++ builds `a.out` inside the workspace, which is then
    run with the workspace as its working directory
    """
    return LanguagePolicy(
        language="cpp",
        extension=".cpp",
        compile_command=[cxx_bin, "{source}", "-O2", "-std=c++17", "-o", "{artifact}"],
        compile_timeout=compile_timeout,
        run_command=["{artifact}"],
        run_timeout=run_timeout,
        output_limit=output_limit,
    )
