import asyncio
from functools import lru_cache
from typing import List, Optional, TypedDict

from fastapi.concurrency import run_in_threadpool
from langgraph.graph import StateGraph, END
from pydantic import ValidationError as PydanticValidationError

from cv_screener.helpers.parsing import extract_pdf_text
from cv_screener.helpers.prompts import build_analysis_prompt, build_review_prompt
from cv_screener.models.models import (
    BatchResult, CandidateResult, FileError, ReviewResult, SkillRequirement, UploadedDocument
)
from cv_screener.models.settings import ScoringThresholds, ScreenerSettings
from cv_screener.services.inference import InferenceGateway, build_gateway
from cv_screener.services.matching import SkillMatcher, SubstringMatcher, get_matcher, passthrough, reconcile
from cv_screener.services.reports import summarize
from cv_screener.utils.exceptions import (
    ConfigurationError, ExceptionContext, InferenceError, MalformedCompletionError, ScreenerBaseException
)
from cv_screener.utils.logging_config import get_logger
from cv_screener.utils.utils import parse_completion

logger = get_logger(__name__)

MODE_SCORECARD = "scorecard"
MODE_REVIEW = "review"


class ScreeningState(TypedDict, total=False):
    file_name: str
    content: bytes
    skills: Optional[List[SkillRequirement]]
    mode: str
    text: str
    prompt: str
    completion: str
    payload: dict
    result: CandidateResult


def build_graph(gateway: InferenceGateway, matcher: SkillMatcher, thresholds: ScoringThresholds):
    """extract -> prompt -> infer -> (review: END | parse -> reconcile)"""

    def node_extract(state: ScreeningState):
        return {"text": extract_pdf_text(state["content"], state.get("file_name"))}

    def node_prompt(state: ScreeningState):
        if state.get("mode") == MODE_REVIEW:
            return {"prompt": build_review_prompt(state["text"])}
        return {"prompt": build_analysis_prompt(state["text"], state.get("skills"))}

    def node_infer(state: ScreeningState):
        with ExceptionContext("model completion", logger, wrap_as=InferenceError, file_name=state.get("file_name")):
            return {"completion": gateway.generate(state["prompt"])}

    def node_parse(state: ScreeningState):
        return {"payload": parse_completion(state["completion"])}

    def node_reconcile(state: ScreeningState):
        payload, skills, file_name = state["payload"], state.get("skills"), state.get("file_name")
        try:
            if skills:
                result = reconcile(payload, skills, matcher, thresholds, file_name=file_name)
            else:
                result = passthrough(payload, file_name=file_name)
        except PydanticValidationError as e:
            raise MalformedCompletionError(f"Model response has invalid fields: {e}", cause=e) from e
        return {"result": result}

    def route_after_infer(state: ScreeningState):
        return "review" if state.get("mode") == MODE_REVIEW else "parse"

    g = StateGraph(ScreeningState)
    g.add_node("extract", node_extract)
    g.add_node("prompt", node_prompt)
    g.add_node("infer", node_infer)
    g.add_node("parse", node_parse)
    g.add_node("reconcile", node_reconcile)
    g.set_entry_point("extract")
    g.add_edge("extract", "prompt")
    g.add_edge("prompt", "infer")
    g.add_conditional_edges("infer", route_after_infer, {"review": END, "parse": "parse"})
    g.add_edge("parse", "reconcile")
    g.add_edge("reconcile", END)
    return g.compile()


class ScreeningPipeline:
    """Runs one résumé through the graph; batches run file by file."""

    def __init__(
        self,
        gateway: InferenceGateway,
        matcher: SkillMatcher = None,
        thresholds: ScoringThresholds = None,
        max_concurrent: int = 1,
    ):
        self.gateway = gateway
        self.matcher = matcher or SubstringMatcher()
        self.thresholds = thresholds or ScoringThresholds()
        self.max_concurrent = max(1, max_concurrent)
        self.graph = build_graph(self.gateway, self.matcher, self.thresholds)

    def analyze(self, content: bytes, file_name: str, skills: Optional[List[SkillRequirement]] = None) -> CandidateResult:
        logger.info(f"Analyzing {file_name} ({len(skills) if skills else 'default'} skills)")
        state = self.graph.invoke({
            "file_name": file_name,
            "content": content,
            "skills": skills or None,
            "mode": MODE_SCORECARD,
        })
        result = state["result"]
        logger.info(f"{file_name}: {result.candidate_name} scored {result.match_score} -> {result.decision_label}")
        return result

    def review(self, content: bytes, file_name: str) -> ReviewResult:
        logger.info(f"Reviewing {file_name}")
        state = self.graph.invoke({"file_name": file_name, "content": content, "mode": MODE_REVIEW})
        return ReviewResult(analysis=state["completion"])

    async def _analyze_one(self, doc: UploadedDocument, skills, semaphore: asyncio.Semaphore):
        async with semaphore:
            try:
                return await run_in_threadpool(self.analyze, doc.content, doc.file_name, skills)
            except ScreenerBaseException as e:
                logger.warning(f"Batch item {doc.file_name} failed: {e.error_code}: {e.message}")
                return FileError(file_name=doc.file_name, error=e.message)
            except Exception as e:
                logger.error(f"Batch item {doc.file_name} failed unexpectedly: {e}", exc_info=True)
                return FileError(file_name=doc.file_name, error=str(e) or e.__class__.__name__)

    async def analyze_batch(
        self, documents: List[UploadedDocument], skills: Optional[List[SkillRequirement]] = None
    ) -> BatchResult:
        """One failing file never stops the rest; output keeps submission order."""
        semaphore = asyncio.Semaphore(self.max_concurrent)
        outcomes = await asyncio.gather(*(self._analyze_one(doc, skills, semaphore) for doc in documents))

        results = [o for o in outcomes if isinstance(o, CandidateResult)]
        errors = [o for o in outcomes if isinstance(o, FileError)]
        logger.info(f"Batch finished: {len(results)} analyzed, {len(errors)} failed")
        return BatchResult(results=results, errors=errors, stats=summarize(results, errors))


def create_pipeline(settings: ScreenerSettings) -> ScreeningPipeline:
    return ScreeningPipeline(
        gateway=build_gateway(settings.inference),
        matcher=get_matcher(settings.processing.matcher),
        thresholds=settings.scoring_thresholds,
        max_concurrent=settings.processing.max_concurrent,
    )


@lru_cache(maxsize=1)
def get_pipeline() -> ScreeningPipeline:
    """Process-wide pipeline, built from the environment on first use."""
    try:
        settings = ScreenerSettings.from_env()
    except (PydanticValidationError, ValueError) as e:
        raise ConfigurationError(f"Invalid screener configuration: {e}", cause=e) from e
    return create_pipeline(settings)
