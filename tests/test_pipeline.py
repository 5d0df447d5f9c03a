import asyncio
import threading
import time

import pytest
from unittest.mock import patch

from cv_screener.models.models import Decision, SkillRequirement, UploadedDocument
from cv_screener.models.settings import ScreenerSettings
from cv_screener.services.graph import ScreeningPipeline, create_pipeline, get_pipeline
from cv_screener.services.matching import ExactMatcher
from cv_screener.utils.exceptions import ConfigurationError, ExtractionError, InferenceError, ParseError, ValidationError
from conftest import completion

SKILLS = [SkillRequirement(name="Python", weight=5), SkillRequirement(name="SQL", weight=1)]


@patch("cv_screener.services.graph.extract_pdf_text", return_value="Jane Doe Python SQL")
class TestScreeningPipeline:

    def test_weighted_analysis_overrides_model(self, mock_extract, pipeline, gateway, pdf_bytes):
        result = pipeline.analyze(pdf_bytes, "jane.pdf", SKILLS)

        assert result.match_score == 83
        assert result.decision == Decision.RECOMMENDED
        assert result.file_name == "jane.pdf"
        assert [s.weight for s in result.skills] == [5, 1]

        prompt = gateway.generate.call_args.args[0]
        assert "- Python (Importance: 5/5)" in prompt
        assert "Jane Doe Python SQL" in prompt
        mock_extract.assert_called_once_with(pdf_bytes, "jane.pdf")

    def test_no_skills_passes_model_values_through(self, mock_extract, pipeline, pdf_bytes):
        result = pipeline.analyze(pdf_bytes, "jane.pdf")

        assert result.match_score == 12
        assert result.decision == Decision.REJECT
        assert all(s.weight is None for s in result.skills)

    def test_matcher_is_pluggable(self, mock_extract, gateway, pdf_bytes):
        gateway.generate.return_value = completion(skills=[{"name": "Python 3", "score": 100}])
        reqs = [SkillRequirement(name="Python", weight=5)]

        loose = ScreeningPipeline(gateway=gateway).analyze(pdf_bytes, "a.pdf", reqs)
        strict = ScreeningPipeline(gateway=gateway, matcher=ExactMatcher()).analyze(pdf_bytes, "a.pdf", reqs)

        assert loose.skills[0].weight == 5
        assert strict.skills[0].weight == 1

    def test_review_returns_free_text(self, mock_extract, pipeline, gateway, pdf_bytes):
        gateway.generate.return_value = "Strengths: plenty. Score: 8/10"

        result = pipeline.review(pdf_bytes, "jane.pdf")

        assert result.analysis == "Strengths: plenty. Score: 8/10"
        assert "career coach" in gateway.generate.call_args.args[0]

    def test_unparseable_completion(self, mock_extract, pipeline, gateway, pdf_bytes):
        gateway.generate.return_value = "Sorry, I can't help with that."
        with pytest.raises(ParseError):
            pipeline.analyze(pdf_bytes, "jane.pdf", SKILLS)

    def test_completion_without_skills(self, mock_extract, pipeline, gateway, pdf_bytes):
        gateway.generate.return_value = completion(candidateName="Jane")
        with pytest.raises(ValidationError):
            pipeline.analyze(pdf_bytes, "jane.pdf", SKILLS)

    def test_gateway_failure(self, mock_extract, pipeline, gateway, pdf_bytes):
        gateway.generate.side_effect = InferenceError("throttled")
        with pytest.raises(InferenceError):
            pipeline.analyze(pdf_bytes, "jane.pdf", SKILLS)

    def test_unexpected_gateway_failure_is_wrapped(self, mock_extract, pipeline, gateway, pdf_bytes):
        gateway.generate.side_effect = TimeoutError("read timed out")
        with pytest.raises(InferenceError) as exc_info:
            pipeline.analyze(pdf_bytes, "jane.pdf", SKILLS)
        assert exc_info.value.message == "read timed out"


class TestBatch:

    @patch("cv_screener.services.graph.extract_pdf_text")
    def test_one_failure_does_not_stop_the_batch(self, mock_extract, pipeline, gateway):
        mock_extract.side_effect = [
            "first resume",
            ExtractionError("No extractable text found in PDF", file_name="scan.pdf"),
            "third resume",
        ]
        gateway.generate.side_effect = [
            completion(candidateName="A", skills=[{"name": "Python", "score": 90}, {"name": "SQL", "score": 50}]),
            completion(candidateName="C", skills=[{"name": "Python", "score": 10}]),
        ]
        docs = [
            UploadedDocument(file_name="a.pdf", content=b"a"),
            UploadedDocument(file_name="scan.pdf", content=b"b"),
            UploadedDocument(file_name="c.pdf", content=b"c"),
        ]

        batch = asyncio.run(pipeline.analyze_batch(docs, SKILLS))

        assert [r.file_name for r in batch.results] == ["a.pdf", "c.pdf"]
        assert [r.match_score for r in batch.results] == [83, 10]
        assert len(batch.errors) == 1
        assert batch.errors[0].file_name == "scan.pdf"
        assert batch.errors[0].error == "No extractable text found in PDF"
        assert batch.stats.total == 3
        assert batch.stats.failed == 1
        assert batch.stats.recommended == 1
        assert batch.stats.rejected == 1

    @patch("cv_screener.services.graph.extract_pdf_text", return_value="text")
    def test_order_is_kept_with_concurrency(self, mock_extract, gateway):
        gateway.generate.return_value = completion(skills=[{"name": "Python", "score": 70}])
        pipeline = ScreeningPipeline(gateway=gateway, max_concurrent=3)
        docs = [UploadedDocument(file_name=f"{i}.pdf", content=b"x") for i in range(6)]

        batch = asyncio.run(pipeline.analyze_batch(docs, SKILLS))

        assert [r.file_name for r in batch.results] == [f"{i}.pdf" for i in range(6)]
        assert batch.errors == []

    @patch("cv_screener.services.graph.extract_pdf_text", side_effect=lambda content, name: f"resume of {name}")
    def test_default_batch_runs_one_call_at_a_time(self, mock_extract, gateway):
        calls = []
        lock = threading.Lock()

        def slow_generate(prompt):
            start = time.monotonic()
            time.sleep(0.02)
            with lock:
                calls.append((prompt, start, time.monotonic()))
            return completion(skills=[{"name": "Python", "score": 70}])

        gateway.generate.side_effect = slow_generate
        docs = [UploadedDocument(file_name=f"{i}.pdf", content=b"x") for i in range(4)]

        batch = asyncio.run(ScreeningPipeline(gateway=gateway).analyze_batch(docs, SKILLS))

        assert len(batch.results) == 4
        for i, (prompt, _, _) in enumerate(calls):
            assert f"resume of {i}.pdf" in prompt
        for (_, _, prev_end), (_, start, _) in zip(calls, calls[1:]):
            assert start >= prev_end

    @patch("cv_screener.services.graph.extract_pdf_text", return_value="text")
    def test_failed_inference_is_recorded(self, mock_extract, pipeline, gateway):
        gateway.generate.side_effect = InferenceError("boom")
        batch = asyncio.run(pipeline.analyze_batch([UploadedDocument(file_name="a.pdf", content=b"x")], SKILLS))
        assert batch.results == []
        assert batch.errors[0].error == "boom"
        assert batch.stats.analyzed == 0


@patch("cv_screener.services.inference.boto3")
def test_create_pipeline_from_settings(mock_boto3, monkeypatch):
    monkeypatch.setenv("SKILL_MATCHER", "exact")
    monkeypatch.setenv("MAX_CONCURRENT", "4")
    monkeypatch.setenv("RECOMMEND_MIN", "90")
    pipeline = create_pipeline(ScreenerSettings.from_env())

    assert isinstance(pipeline.matcher, ExactMatcher)
    assert pipeline.max_concurrent == 4
    assert pipeline.thresholds.recommend_min == 90


def test_invalid_configuration(monkeypatch):
    get_pipeline.cache_clear()
    monkeypatch.setenv("LLM_PROVIDER", "openai")
    try:
        with pytest.raises(ConfigurationError):
            get_pipeline()
    finally:
        get_pipeline.cache_clear()
