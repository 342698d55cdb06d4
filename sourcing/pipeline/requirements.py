"""Stage 1: turn a free-text hiring query into structured Requirements."""

import logging

from pydantic import ValidationError

from sourcing.core.errors import LLMCallError, LLMResponseError
from sourcing.core.schemas import Requirements
from sourcing.llm.base import LLMProvider, parse_json_object

logger = logging.getLogger(__name__)

STAGE = "requirements extraction"

_REQUIREMENTS_SYSTEM_PROMPT = (
    "You are a requirements analyzer for technical recruiting.\n\n"
    "Parse the user's hiring request into structured requirements:\n"
    "  1. Required skills (programming languages, frameworks, technologies)\n"
    "  2. Experience level (junior, mid, senior, lead)\n"
    "  3. Location requirements (city, country, region, remote)\n"
    "  4. Keywords for relevance matching (domains, architectures, tools)\n"
    "  5. Nice-to-have skills (optional qualifications)\n\n"
    'Return ONLY a JSON object (no markdown, no explanation):\n'
    "{\n"
    '  "required_skills": ["skill1", "skill2"],\n'
    '  "experience_level": "junior|mid|senior|lead or empty string",\n'
    '  "locations": ["location1"],\n'
    '  "keywords": ["keyword1", "keyword2"],\n'
    '  "nice_to_have": ["skill3"],\n'
    '  "unclear_request": false,\n'
    '  "clarification_question": null\n'
    "}\n\n"
    "Rules:\n"
    "- required_skills must contain at least one skill unless the request is unclear.\n"
    "- If the request is too vague to name any skill (e.g. \"find developers\", "
    "\"search github\"), set unclear_request to true and put one specific "
    "question in clarification_question.\n"
    "- Do not invent locations the user did not mention."
)


def _build_user_prompt(query: str) -> str:
    return f"User query: {query.strip()}"


def parse_requirements(raw_text: str) -> Requirements:
    """Parse and validate a model response into Requirements.

    Raises:
        LLMResponseError: On malformed JSON or a response that violates the
            skills-or-clarification contract.
    """
    data = parse_json_object(raw_text, STAGE)
    try:
        return Requirements.model_validate(data)
    except ValidationError as e:
        raise LLMResponseError(STAGE, str(e), raw_text) from e


def extract_requirements(query: str, provider: LLMProvider) -> Requirements:
    """Run the requirements extraction inference call.

    Returns Requirements; when ``unclear`` is set the caller must stop and
    surface ``clarification_question``.

    Raises:
        LLMCallError: If the inference call itself fails.
        LLMResponseError: If the response cannot be parsed or validated.
    """
    logger.info("Extracting requirements from query (%d chars)", len(query))
    try:
        raw = provider.complete(_build_user_prompt(query), system=_REQUIREMENTS_SYSTEM_PROMPT)
    except Exception as e:
        raise LLMCallError(STAGE, e) from e

    requirements = parse_requirements(raw)
    if requirements.unclear:
        logger.info("Query is ambiguous: %s", requirements.clarification_question)
    else:
        logger.info(
            "Requirements: skills=%s level=%s locations=%s",
            requirements.required_skills,
            requirements.experience_level or "unspecified",
            requirements.locations,
        )
    return requirements
