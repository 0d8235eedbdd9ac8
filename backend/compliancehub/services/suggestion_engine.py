"""
Answer suggestion engine — rule-based matching of questionnaire questions
against the organization's answer library.
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from compliancehub.models.answer_library import AnswerLibraryEntry
from compliancehub.models.questionnaire import Question
from compliancehub.services.questionnaire_parser import extract_keywords

MIN_SCORE = 30
MAX_SUGGESTIONS = 5


def _phrase_matches(phrase: str, keywords: list[str]) -> bool:
    p = phrase.lower()
    return any(k in p or p in k for k in keywords)


def score_entry(entry: AnswerLibraryEntry, keywords: list[str]) -> tuple[float, list[str]]:
    """Return (score, matched phrases) for one library entry."""
    phrases = [p for p in (entry.key_phrases or []) if p]
    if not phrases:
        return 0.0, []
    matched = [p for p in phrases if _phrase_matches(p, keywords)]
    score = min(100.0, len(matched) / len(phrases) * 70 + entry.confidence_score * 0.3)
    return round(score, 1), matched


class SuggestionEngine:
    """Ranks active library entries of an organization for a question."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def suggest_for_question(self, question: Question, organization_id: int) -> list[dict]:
        keywords = [k.lower() for k in (question.keywords or [])] or extract_keywords(question.text)
        if not keywords:
            return []

        entries = (await self.session.execute(
            select(AnswerLibraryEntry).where(
                AnswerLibraryEntry.organization_id == organization_id,
                AnswerLibraryEntry.is_active.is_(True),
            )
        )).scalars().all()

        suggestions = []
        for entry in entries:
            score, matched = score_entry(entry, keywords)
            if not matched or score <= MIN_SCORE:
                continue
            suggestions.append({
                "library_entry_id": entry.id,
                "suggested_text": entry.standard_answer,
                "confidence": score,
                "reasoning": f"Matched {len(matched)} keywords: {', '.join(matched)}",
                "category": entry.category,
            })

        suggestions.sort(key=lambda x: -x["confidence"])
        return suggestions[:MAX_SUGGESTIONS]
