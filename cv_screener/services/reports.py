from typing import List

import pandas as pd

from cv_screener.models.models import BatchStats, CandidateResult, Decision, FileError

REPORT_COLUMNS = [
    "file_name", "candidate_name", "years_of_experience", "decision", "match_score", "summary", "skills"
]


def summarize(results: List[CandidateResult], errors: List[FileError] = None) -> BatchStats:
    errors = errors or []
    if not results:
        return BatchStats(total=len(errors), failed=len(errors))

    counts = {d: 0 for d in Decision}
    for r in results:
        if r.decision in counts:
            counts[r.decision] += 1
    top = max(results, key=lambda r: r.match_score)

    return BatchStats(
        total=len(results) + len(errors),
        analyzed=len(results),
        failed=len(errors),
        average_score=round(sum(r.match_score for r in results) / len(results), 1),
        recommended=counts[Decision.RECOMMENDED],
        consider=counts[Decision.CONSIDER],
        rejected=counts[Decision.REJECT],
        top_candidate=top.candidate_name,
    )


def _format_skills(result: CandidateResult) -> str:
    parts = []
    for s in result.skills:
        w = f" x{s.weight}" if s.weight is not None else ""
        parts.append(f"{s.name}: {s.score}{w}")
    return "; ".join(parts)


def build_report_frame(results: List[CandidateResult]) -> pd.DataFrame:
    data = [{
        "file_name": r.file_name or "",
        "candidate_name": r.candidate_name,
        "years_of_experience": r.years_of_experience,
        "decision": r.decision_label,
        "match_score": r.match_score,
        "summary": r.summary,
        "skills": _format_skills(r),
    } for r in results]

    df = pd.DataFrame(data, columns=REPORT_COLUMNS)
    if len(df):
        # stable sort keeps submission order among equal scores
        df = df.sort_values("match_score", ascending=False, kind="mergesort").reset_index(drop=True)
    return df


def write_report_csv(results: List[CandidateResult]) -> str:
    """CSV text of the batch, best match first (headers only when empty)."""
    return build_report_frame(results).to_csv(index=False)
