from conftest import make_profile, make_rubric
from screening.helpers.prompts import build_batch_prompt, build_profile_prompt, format_rubric_items, profile_slot


def test_profile_slot_is_one_based():
    assert profile_slot(0) == "profile_1"
    assert profile_slot(9) == "profile_10"


def test_single_prompt_lists_every_item_and_level():
    rubric = make_rubric(item_ids=("experience", "leadership"))
    profile = make_profile("Ada Lovelace", "ada@example.com", skills=["Analytical Engines"])

    prompt = build_profile_prompt(profile, rubric)

    assert "EXPERIENCE:" in prompt
    assert "LEADERSHIP:" in prompt
    assert '"experience": {' in prompt
    assert '"leadership": {' in prompt
    assert "Analytical Engines" in prompt
    for level in range(1, 6):
        assert f"{level}: level {level}" in prompt


def test_batch_prompt_addresses_profiles_by_slot():
    rubric = make_rubric(item_ids=("skills",))
    batch = [make_profile("Ada Lovelace", "ada@example.com"), make_profile("Alan Turing", "alan@example.com")]

    prompt = build_batch_prompt(batch, rubric)

    assert "Evaluate the following 2 candidate profiles" in prompt
    assert "PROFILE_1 (ID: ada-lovelace-ada, Name: Ada Lovelace)" in prompt
    assert "PROFILE_2 (ID: alan-turing-alan, Name: Alan Turing)" in prompt
    assert '"profile_1": {' in prompt
    assert '"profile_2": {' in prompt
    assert '"profile_3"' not in prompt
    assert prompt.index("Ada Lovelace") < prompt.index("Alan Turing")


def test_rubric_items_keep_rubric_order():
    text = format_rubric_items(make_rubric(item_ids=("zeta", "alpha")))

    assert text.index("ZETA") < text.index("ALPHA")
