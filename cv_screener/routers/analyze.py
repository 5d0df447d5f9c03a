import json
from typing import List, Optional

from fastapi import APIRouter, File, Form, Query, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response
from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from cv_screener.models.models import SkillRequirement, UploadedDocument
from cv_screener.services.graph import get_pipeline
from cv_screener.services.reports import write_report_csv
from cv_screener.utils.exceptions import InputError
from cv_screener.utils.logging_config import get_logger, log_api_call

router = APIRouter(tags=["analyze"])
logger = get_logger(__name__)

_skill_list = TypeAdapter(List[SkillRequirement])


def parse_skills(raw: Optional[str]) -> Optional[List[SkillRequirement]]:
    """Decode the optional `skills` form part. Empty or absent means no skills."""
    if raw is None or not raw.strip():
        return None
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise InputError(f"skills must be a JSON array: {e}", field="skills", value=raw[:200]) from e
    if not isinstance(data, list):
        raise InputError("skills must be a JSON array of {name, weight} objects", field="skills", value=raw[:200])
    try:
        skills = _skill_list.validate_python(data)
    except PydanticValidationError as e:
        raise InputError(f"Invalid skills: {e.errors()[0].get('msg', str(e))}", field="skills",
                         details={"validation_errors": json.loads(e.json())}) from e
    return skills or None


async def _read_upload(file: UploadFile) -> UploadedDocument:
    return UploadedDocument(file_name=file.filename or "upload.pdf", content=await file.read())


@router.post("/analyze")
@log_api_call("analyze")
async def analyze_cv(
    file: Optional[UploadFile] = File(None),
    skills: Optional[str] = Form(None),
):
    """Score one résumé. With skills the score is recomputed from their weights."""
    if file is None:
        raise InputError("No file uploaded", field="file")
    requirements = parse_skills(skills)
    doc = await _read_upload(file)

    result = await run_in_threadpool(get_pipeline().analyze, doc.content, doc.file_name, requirements)
    # fileName is attached client-side for single uploads
    return result.model_dump(mode="json", by_alias=True, exclude={"file_name"}, exclude_none=True)


@router.post("/review")
@log_api_call("review")
async def review_cv(file: Optional[UploadFile] = File(None)):
    """Free-text career-coach report instead of a scorecard."""
    if file is None:
        raise InputError("No file uploaded", field="file")
    doc = await _read_upload(file)
    result = await run_in_threadpool(get_pipeline().review, doc.content, doc.file_name)
    return result.model_dump()


@router.post("/analyze/batch")
@log_api_call("analyze batch")
async def analyze_batch(
    files: Optional[List[UploadFile]] = File(None),
    skills: Optional[str] = Form(None),
    output: str = Query("json", alias="format", pattern="^(json|csv)$", description="json or csv"),
):
    """Score several résumés against one skill list; failures are reported per file."""
    if not files:
        raise InputError("No file uploaded", field="files")
    requirements = parse_skills(skills)
    documents = [await _read_upload(f) for f in files]

    batch = await get_pipeline().analyze_batch(documents, requirements)

    if output == "csv":
        return Response(
            content=write_report_csv(batch.results),
            media_type="text/csv",
            headers={"Content-Disposition": 'attachment; filename="screening_report.csv"'},
        )
    return batch.model_dump(mode="json", by_alias=True, exclude_none=True)
