from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from .strategies.base import RosterStrategy
from .strategies.canonical_strategy import CanonicalStrategy
from .strategies.composite_string_strategy import CompositeStringStrategy
from .strategies.decomposed_field_strategy import DecomposedFieldStrategy
from .strategies.department_scoped_strategy import DepartmentScopedStrategy


@dataclass
class RosterStrategyFactory:
    """Factory Pattern: the strategy chain, strongest signal first."""

    def chain(self) -> Sequence[RosterStrategy]:
        return (
            CanonicalStrategy(),
            CompositeStringStrategy(),
            DecomposedFieldStrategy(),
            DepartmentScopedStrategy(),
        )
