from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class Decision(str, Enum):
    RECOMMENDED = "RECOMMENDED"
    CONSIDER = "CONSIDER"
    REJECT = "REJECT"


class CamelModel(BaseModel):
    """Serialised with camelCase keys, accepts either spelling on input"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SkillRequirement(BaseModel):
    """Caller-declared skill and its importance"""
    name: str = Field(min_length=1)
    weight: int = Field(ge=1, le=5)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("skill name must not be blank")
        return v


class SkillObservation(CamelModel):
    name: str = ""
    evidence: str = ""
    proficiency: int = 0
    score: int = 0
    weight: Optional[int] = None


class CandidateResult(CamelModel):
    file_name: Optional[str] = None
    candidate_name: str = "Unknown"
    years_of_experience: str = ""
    summary: str = ""
    skills: List[SkillObservation] = Field(default_factory=list)
    match_score: int = 0
    # a no-skills completion may carry a decision outside the three bands
    decision: Union[Decision, str] = Decision.REJECT

    @property
    def decision_label(self) -> str:
        return self.decision.value if isinstance(self.decision, Decision) else self.decision


class ReviewResult(BaseModel):
    analysis: str


class FileError(CamelModel):
    file_name: str
    error: str


class BatchStats(CamelModel):
    total: int = 0
    analyzed: int = 0
    failed: int = 0
    average_score: float = 0.0
    recommended: int = 0
    consider: int = 0
    rejected: int = 0
    top_candidate: Optional[str] = None


class BatchResult(CamelModel):
    results: List[CandidateResult] = Field(default_factory=list)
    errors: List[FileError] = Field(default_factory=list)
    stats: BatchStats = Field(default_factory=BatchStats)


class UploadedDocument(BaseModel):
    """Raw upload handed to the pipeline"""
    file_name: str
    content: bytes
