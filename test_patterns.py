"""
PATTERN LIBRARY TESTS
Rule helpers and JSON overrides.
"""

import json

import pytest

from fraud_guard.patterns import (
    CONTENT_RULES, PATTERN_LIBRARY_VERSION, PHOTO_DOCUMENT_RULES, PatternLibrary, TAG_THREAT,
    all_matches, first_match, rule,
)
from fraud_guard.verdicts import SenderType


def test_rules_are_case_insensitive():
    check = rule("sim_swap", TAG_THREAT, r"\bsim\s+swap\b")
    assert check.search("SIM SWAP requested")
    assert check.search(None) is None


def test_first_and_all_matches():
    text = "Driving licence and passport of the Republic of India"
    assert first_match(PHOTO_DOCUMENT_RULES, text).rule_id == "doc_driving_license"
    assert [r.rule_id for r in all_matches(PHOTO_DOCUMENT_RULES, text)] == [
        "doc_driving_license", "doc_passport",
    ]
    assert first_match(PHOTO_DOCUMENT_RULES, "holiday photo") is None


def test_rule_ids_are_unique():
    ids = [r.rule_id for r in CONTENT_RULES]
    assert len(ids) == len(set(ids))


def test_default_library():
    library = PatternLibrary()
    assert library.version == PATTERN_LIBRARY_VERSION
    assert library.legitimate_shortcodes["SBIINB"] == ("State Bank of India", SenderType.BANK)
    assert all(r.tag == TAG_THREAT for r in library.rules_for(TAG_THREAT))


def test_libraries_do_not_share_tables():
    first = PatternLibrary()
    first.typosquat_targets.append("MYBANK")
    assert "MYBANK" not in PatternLibrary().typosquat_targets


def test_from_dict_replaces_only_given_tables():
    library = PatternLibrary.from_dict({
        "version": 7,
        "typosquat_targets": ["mybank"],
        "photo_document_rules": [
            {"id": "doc_ration_card", "pattern": r"ration.*card", "score": "25", "description": "Fake ration card"},
        ],
    })
    assert library.version == "7"
    assert library.typosquat_targets == ["MYBANK"]

    document = library.photo_document_rules[0]
    assert document.tag == "photo_document_rules"
    assert document.score == 25
    assert document.search("Ration Card No. 1234")

    assert library.content_rules == PatternLibrary().content_rules


def test_load_from_json_file(tmp_path):
    path = tmp_path / "rules.json"
    path.write_text(json.dumps({
        "version": "2024.12",
        "legitimate_shortcodes": {"mybank": {"organization": "My Bank", "category": "bank"}},
    }), encoding="utf-8")

    library = PatternLibrary.load(str(path))
    assert library.version == "2024.12"
    assert library.legitimate_shortcodes == {"MYBANK": ("My Bank", SenderType.BANK)}


def test_load_rejects_bad_category(tmp_path):
    path = tmp_path / "rules.json"
    path.write_text(json.dumps({
        "legitimate_shortcodes": {"MYBANK": {"organization": "My Bank", "category": "pirate"}},
    }), encoding="utf-8")

    with pytest.raises(ValueError):
        PatternLibrary.load(str(path))
