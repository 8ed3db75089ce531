import json
from typing import List

from screening.models.models import Profile, Rubric, SCORE_LEVELS

SINGLE_SYSTEM_PROMPT = (
    "You are an expert recruiter evaluating candidate profiles. "
    "Return only valid JSON responses with scores for all rubric items."
)

BATCH_SYSTEM_PROMPT = (
    "You are an expert recruiter evaluating candidate profiles. "
    "Return only valid JSON responses with scores for all profiles and all rubric items."
)

SINGLE_PROMPT = """
Evaluate the following candidate profile based on ALL rubric items below:

Profile:
{profile}

RUBRIC ITEMS:
{rubric_items}

Return a JSON object with scores for ALL rubric items:
{{{expected_format}
}}

Only return valid JSON, no other text."""

BATCH_PROMPT = """
Evaluate the following {count} candidate profiles based on ALL rubric items below:

PROFILES:
{profiles}

RUBRIC ITEMS:
{rubric_items}

Return a JSON object with scores for ALL profiles and ALL rubric items:
{{{expected_format}
}}

Only return valid JSON, no other text."""


def profile_slot(index: int) -> str:
    """Response key for the profile at 0-based ``index`` of a batch."""
    return f"profile_{index + 1}"


def profile_json(profile: Profile) -> str:
    return json.dumps(profile.model_dump(mode="json", by_alias=True), indent=2, ensure_ascii=False)


def format_rubric_items(rubric: Rubric) -> str:
    blocks = []
    for item in rubric.items:
        guide = "\n".join(f"{level}: {item.score_descriptions[level]}" for level in SCORE_LEVELS)
        blocks.append(f"\n{item.id.upper()}: {item.description}\nScoring Guide:\n{guide}\n")
    return "\n".join(blocks)


def _item_format(rubric: Rubric, indent: str, explanation: str) -> str:
    return ",\n".join(
        f'{indent}"{item.id}": {{\n'
        f'{indent}  "score": [1-5],\n'
        f'{indent}  "explanation": "{explanation}"\n'
        f'{indent}}}'
        for item in rubric.items
    )


def build_profile_prompt(profile: Profile, rubric: Rubric) -> str:
    """All rubric items for one profile in a single prompt."""
    expected = "\n" + _item_format(rubric, "  ", "detailed explanation for the score")
    return SINGLE_PROMPT.format(
        profile=profile_json(profile),
        rubric_items=format_rubric_items(rubric),
        expected_format=expected,
    )


def build_batch_prompt(profiles: List[Profile], rubric: Rubric) -> str:
    """
    Several profiles against all rubric items in one prompt.

    Profiles are addressed by position (``profile_1``, ``profile_2``, ...) so the
    response can be mapped back without trusting any identifier the model echoes.
    """
    profiles_text = "\n".join(
        f"\n{profile_slot(i).upper()} (ID: {p.id}, Name: {p.name}):\n{profile_json(p)}\n"
        for i, p in enumerate(profiles)
    )
    expected = ",".join(
        f'\n  "{profile_slot(i)}": {{\n{_item_format(rubric, "    ", "detailed explanation")}\n  }}'
        for i in range(len(profiles))
    )
    return BATCH_PROMPT.format(
        count=len(profiles),
        profiles=profiles_text,
        rubric_items=format_rubric_items(rubric),
        expected_format=expected,
    )
