import math
import re
from fractions import Fraction
from typing import Any, Dict, Iterable, List, Optional

from cv_screener.models.models import CandidateResult, Decision, SkillObservation, SkillRequirement
from cv_screener.models.settings import MatcherType, ScoringThresholds
from cv_screener.utils.exceptions import ValidationError
from cv_screener.utils.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_WEIGHT = 1


class SkillMatcher:
    """Decides whether a model-reported skill name refers to a requirement."""

    name = "base"

    def matches(self, requirement: str, observation: str) -> bool:
        raise NotImplementedError


class SubstringMatcher(SkillMatcher):
    """Case-insensitive containment in either direction."""

    name = "substring"

    def matches(self, requirement: str, observation: str) -> bool:
        r, o = requirement.strip().lower(), observation.strip().lower()
        if not r or not o:
            return False
        return r in o or o in r


class ExactMatcher(SkillMatcher):
    name = "exact"

    def matches(self, requirement: str, observation: str) -> bool:
        r = requirement.strip().lower()
        return bool(r) and r == observation.strip().lower()


class TokenMatcher(SkillMatcher):
    """Equal sets of lowercase alphanumeric tokens ("Node.js" == "node js")."""

    name = "token"

    @staticmethod
    def tokens(x: str) -> frozenset:
        return frozenset(re.findall(r"[a-z0-9+#]+", x.lower()))

    def matches(self, requirement: str, observation: str) -> bool:
        rt = self.tokens(requirement)
        return bool(rt) and rt == self.tokens(observation)


MATCHERS = {
    MatcherType.SUBSTRING: SubstringMatcher,
    MatcherType.EXACT: ExactMatcher,
    MatcherType.TOKEN: TokenMatcher,
}


def get_matcher(kind: MatcherType = MatcherType.SUBSTRING) -> SkillMatcher:
    return MATCHERS[MatcherType(kind)]()


def _as_text(x: Any) -> str:
    if x is None:
        return ""
    if isinstance(x, list):
        return " ".join([str(t).strip() for t in x if str(t).strip()])
    return str(x).strip()


def _as_int(x: Any, default: int = 0, clamp: bool = True) -> int:
    """Coerce model numbers ("85", 85.0, "85%") to an int, clamped to 0-100 unless told otherwise."""
    if isinstance(x, bool) or x is None:
        return default
    if isinstance(x, str):
        m = re.search(r"-?\d+(\.\d+)?", x)
        if not m:
            return default
        x = m.group(0)
    try:
        v = float(x)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(v):
        return default
    v = int(round_half_up(v))
    return max(0, min(100, v)) if clamp else v


def round_half_up(x) -> int:
    """Round .5 away from zero for non-negative values, like JavaScript Math.round."""
    return math.floor(x + Fraction(1, 2)) if isinstance(x, Fraction) else math.floor(x + 0.5)


def resolve_weight(name: str, requirements: Iterable[SkillRequirement], matcher: SkillMatcher = None) -> int:
    """Weight of the first requirement matching `name`, else DEFAULT_WEIGHT."""
    matcher = matcher or SubstringMatcher()
    for req in requirements:
        if matcher.matches(req.name, name):
            return req.weight
    return DEFAULT_WEIGHT


def compute_match_score(observations: Iterable[SkillObservation]) -> int:
    total_weighted = 0
    total_max = 0
    for obs in observations:
        w = obs.weight if obs.weight is not None else DEFAULT_WEIGHT
        total_weighted += obs.score * w
        total_max += 100 * w
    if total_max <= 0:
        return 0
    # exact arithmetic so .5 ties round the same way every time
    return max(0, min(100, round_half_up(Fraction(total_weighted, total_max) * 100)))


def categorize(score: int, thresholds: ScoringThresholds = None) -> Decision:
    thresholds = thresholds or ScoringThresholds()
    if score >= thresholds.recommend_min:
        return Decision.RECOMMENDED
    if score >= thresholds.consider_min:
        return Decision.CONSIDER
    return Decision.REJECT


def _observation(raw: Any) -> SkillObservation:
    if not isinstance(raw, dict):
        # bare strings show up now and then; treat as a named skill with no score
        return SkillObservation(name=_as_text(raw))
    return SkillObservation(
        name=_as_text(raw.get("name")),
        evidence=_as_text(raw.get("evidence")),
        proficiency=_as_int(raw.get("proficiency")),
        score=_as_int(raw.get("score")),
    )


def _skill_list(payload: Dict[str, Any]) -> List[Any]:
    skills = payload.get("skills")
    if not isinstance(skills, list):
        raise ValidationError(
            "Model response has no 'skills' list",
            field="skills",
            value=skills,
        )
    return skills


def _base_fields(payload: Dict[str, Any], file_name: Optional[str]) -> Dict[str, Any]:
    return {
        "file_name": file_name,
        "candidate_name": _as_text(payload.get("candidateName")) or "Unknown",
        "years_of_experience": _as_text(payload.get("yearsOfExperience")),
        "summary": _as_text(payload.get("summary")),
    }


def reconcile(
    payload: Dict[str, Any],
    requirements: List[SkillRequirement],
    matcher: SkillMatcher = None,
    thresholds: ScoringThresholds = None,
    file_name: str = None,
) -> CandidateResult:
    """Recompute matchScore and decision from the caller's weights.

    Whatever score or decision the model proposed is discarded.
    """
    matcher = matcher or SubstringMatcher()
    observations = []
    for raw in _skill_list(payload):
        obs = _observation(raw)
        obs.weight = resolve_weight(obs.name, requirements, matcher)
        observations.append(obs)

    score = compute_match_score(observations)
    decision = categorize(score, thresholds)
    logger.debug(
        f"Reconciled {file_name or 'candidate'}: {len(observations)} skills, "
        f"score={score} decision={decision.value} (model said {payload.get('matchScore')}/{payload.get('decision')})"
    )
    return CandidateResult(
        **_base_fields(payload, file_name),
        skills=observations,
        match_score=score,
        decision=decision,
    )


def passthrough(payload: Dict[str, Any], file_name: str = None) -> CandidateResult:
    """No requirement list configured: keep the model's own score and decision as given.

    A missing skills list is an empty one, an unfamiliar decision is kept verbatim
    and matchScore is not clamped.
    """
    raw_decision = _as_text(payload.get("decision"))
    try:
        decision = Decision(raw_decision.upper())
    except ValueError:
        decision = raw_decision
    skills = payload.get("skills")
    return CandidateResult(
        **_base_fields(payload, file_name),
        skills=[_observation(raw) for raw in skills] if isinstance(skills, list) else [],
        match_score=_as_int(payload.get("matchScore"), clamp=False),
        decision=decision,
    )
