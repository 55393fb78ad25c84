from __future__ import annotations

from dataclasses import dataclass

from ..core.constants import COMPOSITE_KEY_SEPARATOR


@dataclass(frozen=True)
class ClassContext:
    """Canonical identity of one class offering.

    Only the Normalizer builds these, so two contexts with equal
    composite keys always describe the same class.
    """

    batch_year: str
    year_label: str
    semester_label: str
    section: str
    department: str

    @property
    def composite_key(self) -> str:
        # department is an authorization dimension, not part of class identity
        return COMPOSITE_KEY_SEPARATOR.join(
            (self.batch_year, self.year_label, self.semester_label, self.section)
        )

    @property
    def year_number(self) -> int:
        return int(self.year_label[0])

    @property
    def semester_number(self) -> int:
        return int(self.semester_label.split()[-1])

    def identity(self) -> tuple[str, str, str, str]:
        return (self.batch_year, self.year_label, self.semester_label, self.section)

    def to_dict(self) -> dict:
        return {
            "batch": self.batch_year,
            "year": self.year_label,
            "semester": self.semester_label,
            "section": self.section,
            "department": self.department,
            "composite_key": self.composite_key,
        }
