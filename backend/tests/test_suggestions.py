"""Answer suggestion scoring and ranking."""
import pytest

from compliancehub.models.answer_library import AnswerLibraryEntry
from compliancehub.models.questionnaire import Question
from compliancehub.services.suggestion_engine import SuggestionEngine, score_entry


def _entry(phrases: list[str], confidence: int = 50, **extra) -> AnswerLibraryEntry:
    return AnswerLibraryEntry(key_phrases=phrases, confidence_score=confidence, **extra)


def test_score_counts_matched_phrases():
    score, matched = score_entry(_entry(["incident response", "breach", "forensics"], 80), ["incident"])
    assert matched == ["incident response"]
    assert score == 47.3


def test_keyword_containing_phrase_matches():
    score, matched = score_entry(_entry(["mfa"], 0), ["mfa-enforced"])
    assert matched == ["mfa"]
    assert score == 70.0


def test_score_is_capped():
    score, _ = score_entry(_entry(["backup", "recovery"], 100), ["backup", "recovery"])
    assert score == 100.0


def test_entry_without_phrases_scores_zero():
    assert score_entry(_entry([]), ["backup"]) == (0.0, [])


# ═══════════════════ ENGINE ═══════════════════

@pytest.mark.asyncio
async def test_engine_ranks_and_filters(db, seed):
    db.add_all([
        _entry(["backup", "recovery"], 60, organization_id=seed.org_id, category="BUSINESS_CONTINUITY",
               standard_answer="Daily backups."),
        _entry(["backup", "tape", "offsite", "vault"], 90, organization_id=seed.org_id,
               category="BUSINESS_CONTINUITY", standard_answer="Tapes go offsite."),
        _entry(["backup"], 95, organization_id=seed.org_id, category="CUSTOM",
               standard_answer="Retired answer.", is_active=False),
        _entry(["backup"], 95, organization_id=seed.other_org_id, category="CUSTOM",
               standard_answer="Other organization."),
        _entry(["firewall"], 99, organization_id=seed.org_id, category="NETWORK_SECURITY",
               standard_answer="Unrelated."),
    ])
    await db.commit()

    question = Question(text="Describe your backup and recovery procedure.", keywords=[])
    suggestions = await SuggestionEngine(db).suggest_for_question(question, seed.org_id)

    assert [s["suggested_text"] for s in suggestions] == ["Daily backups.", "Tapes go offsite."]
    assert suggestions[0]["confidence"] == 88.0
    assert suggestions[0]["reasoning"] == "Matched 2 keywords: backup, recovery"
    assert suggestions[1]["confidence"] == 44.5


@pytest.mark.asyncio
async def test_engine_drops_weak_matches(db, seed):
    phrases = ["backup", "tape", "vault", "offsite", "courier", "archive", "retention", "media", "storage", "shelf"]
    db.add(_entry(phrases, 10, organization_id=seed.org_id, category="CUSTOM", standard_answer="Weak."))
    await db.commit()

    question = Question(text="Anything?", keywords=["backup"])
    assert await SuggestionEngine(db).suggest_for_question(question, seed.org_id) == []


@pytest.mark.asyncio
async def test_engine_without_keywords(db, seed):
    question = Question(text="What is your company size?", keywords=[])
    assert await SuggestionEngine(db).suggest_for_question(question, seed.org_id) == []
