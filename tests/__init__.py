import re
from typing import Union


def match_patterns(patterns: Union[str, list[str]], s: str, exact: bool = False) -> None:
    """Checks that each regex pattern matches the string (fully, if exact=True)."""
    if isinstance(patterns, str):
        patterns = [patterns]
    for pattern in patterns:
        if exact:
            assert pattern == s
        else:
            assert re.compile(pattern, re.DOTALL).search(s), f'pattern {pattern!r} not found'
