"""Virtual user concurrency patterns.

Scripts declare :class:`Stage` lists; the command line can replace them with
a :class:`ConstantPattern`. Both implement :class:`LoadPattern`.
"""

from __future__ import annotations

from conduitload.patterns.base import LoadPattern
from conduitload.patterns.constant import ConstantPattern
from conduitload.patterns.stages import Stage, StagesPattern, format_duration, parse_duration

__all__ = [
    "ConstantPattern",
    "LoadPattern",
    "Stage",
    "StagesPattern",
    "format_duration",
    "parse_duration",
]
