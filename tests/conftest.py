import json
import os

os.environ.setdefault("ENVIRONMENT", "testing")

import pytest
from unittest.mock import MagicMock

from cv_screener.services.graph import ScreeningPipeline
from cv_screener.services.inference import InferenceGateway


def completion(**fields) -> str:
    """A model completion wrapped the way models like to wrap it."""
    return "```json\n" + json.dumps(fields) + "\n```"


@pytest.fixture
def gateway():
    gw = MagicMock(spec=InferenceGateway)
    gw.generate.return_value = completion(
        candidateName="Jane Doe",
        yearsOfExperience="7 Years",
        matchScore=12,
        decision="REJECT",
        summary="Strong Python engineer.",
        skills=[
            {"name": "Python", "evidence": "7 years of Django", "proficiency": 90, "score": 90},
            {"name": "SQL", "evidence": "Some reporting", "proficiency": 50, "score": 50},
        ],
    )
    return gw


@pytest.fixture
def pipeline(gateway):
    return ScreeningPipeline(gateway=gateway)


@pytest.fixture
def pdf_bytes():
    return b"%PDF-1.4 fake resume"
