from typing import List, Optional, Sequence

from cv_screener.models.models import SkillRequirement

ANALYSIS_PROMPT = """You are a strict data extraction AI. Analyze this resume text and score the candidate against the skills below.
Return a valid JSON object only. Do not add any conversational text, explanations, or Markdown code fences.

SKILLS TO EVALUATE:
{skill_lines}

Resume Text:
{resume}

Output Format (JSON):
{{
  "candidateName": "Extract full name",
  "yearsOfExperience": "Extract total years (e.g., '10.5 Years')",
  "matchScore": number (0-100 overall score),
  "decision": "RECOMMENDED" or "CONSIDER" or "REJECT",
  "summary": "One sentence summary of strengths and weaknesses.",
  "skills": [
    {{
      "name": "Skill name exactly as listed above",
      "evidence": "Extract specific evidence from CV or state 'No explicit experience found'",
      "proficiency": number (0-100),
      "score": number (0-100)
    }}
  ]
}}

Return one entry in "skills" for every skill listed above."""

# Used when the caller configured no skills; the model sees the template only
DEFAULT_SKILLS = (
    "Wireless Networks (5G, 4G, LTE)",
    "Fixed Networks (Fiber)",
    "OSS",
    "Service Assurance",
)

DEFAULT_ANALYSIS_PROMPT = """You are a strict data extraction AI. Analyze this resume text and extract data into a valid JSON format only.
Do not add any conversational text, explanations, or Markdown code fences.

Resume Text:
{resume}

Output Format (JSON):
{{
  "candidateName": "Extract full name",
  "yearsOfExperience": "Extract total years (e.g., '10.5 Years')",
  "matchScore": number (0-100 overall score),
  "decision": "RECOMMENDED" or "CONSIDER" or "REJECT",
  "summary": "One sentence summary of strengths and weaknesses.",
  "skills": [
{skill_template}
  ]
}}"""

DEFAULT_SKILL_ENTRY = """    {{
      "name": "{name}",
      "weight": "4/5",
      "evidence": "Extract specific evidence from CV or state 'No explicit experience found'",
      "proficiency": number (0-100),
      "score": number (0-100)
    }}"""

REVIEW_PROMPT = """You are an expert CV reviewer and career coach.
Analyze the following resume text and provide:
1. A summary of the candidate's strengths.
2. Specific improvements for their bullet points (using STAR method).
3. Missing keywords based on their apparent industry.
4. A score out of 10.

RESUME TEXT:
{resume}"""


def format_skill_lines(skills: Sequence[SkillRequirement]) -> str:
    return "\n".join(f"- {s.name} (Importance: {s.weight}/5)" for s in skills)


def build_analysis_prompt(resume_text: str, skills: Optional[List[SkillRequirement]] = None) -> str:
    """Render the scorecard instruction; resume text is embedded verbatim."""
    if skills:
        return ANALYSIS_PROMPT.format(skill_lines=format_skill_lines(skills), resume=resume_text)

    template = ",\n".join(DEFAULT_SKILL_ENTRY.format(name=name) for name in DEFAULT_SKILLS)
    return DEFAULT_ANALYSIS_PROMPT.format(skill_template=template, resume=resume_text)


def build_review_prompt(resume_text: str) -> str:
    return REVIEW_PROMPT.format(resume=resume_text)
