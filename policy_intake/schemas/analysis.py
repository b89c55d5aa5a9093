"""Plain-language analysis of a verified draft."""

from typing import List, Optional

from pydantic import Field

from policy_intake.schemas.base import FrozenCamelModel


class AnalysisResult(FrozenCamelModel):
    summary: Optional[str] = None
    key_coverages: List[str] = Field(default_factory=list)
    key_numbers: List[str] = Field(default_factory=list)
    things_to_know: Optional[str] = None
    benefits: List[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (
            self.summary
            or self.key_coverages
            or self.key_numbers
            or self.things_to_know
            or self.benefits
        )
