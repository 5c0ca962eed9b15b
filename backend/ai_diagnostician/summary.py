from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .errors import GenerationError, OutOfSequence, SummaryIncomplete
from .gemini_client import GroundedText, LLMError, TruncatedResponseError, extract_json_object
from .mastery import MasteryAggregator, effective_verdicts
from .prompts import summary_prompt
from .questions import FreeTextQuestion, Verdict
from .resources import LearningResource, ResourceLibrary
from .session_store import Session

logger = logging.getLogger(__name__)


class RadarData(BaseModel):
    categories: List[str] = Field(default_factory=list)
    scores: List[int] = Field(default_factory=list)


class Report(BaseModel):
    overall: str
    highlights: List[str]
    blindspots: List[str]
    suggestions: List[str] = Field(default_factory=list)
    detailed_analysis: str
    learning_resources: List[LearningResource] = Field(default_factory=list)
    radar: RadarData
    citations: List[str] = Field(default_factory=list)
    self_rating: int
    overall_level: int
    mastery_score: float
    answered: int
    total_questions: int


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if str(v).strip()]


def _radar_from(data: Any) -> Optional[RadarData]:
    if not isinstance(data, dict):
        return None
    categories = data.get("categories")
    scores = data.get("scores")
    if not isinstance(categories, list) or not isinstance(scores, list):
        return None
    if not categories or len(categories) != len(scores):
        return None
    try:
        return RadarData(
            categories=[str(c) for c in categories],
            scores=[int(round(max(0.0, min(100.0, float(s))))) for s in scores],
        )
    except (TypeError, ValueError):
        return None


class SummaryBuilder:
    def __init__(
        self,
        llm: Any,
        aggregator: MasteryAggregator,
        resources: ResourceLibrary,
        feedback: Any = None,
        min_analysis_chars: int = 200,
    ) -> None:
        self.llm = llm
        self.aggregator = aggregator
        self.resources = resources
        self.feedback = feedback
        self.min_analysis_chars = min_analysis_chars

    async def _fill_judgements(self, session: Session) -> None:
        if self.feedback is None:
            return
        for result in session.results:
            index = result.question_index
            question = session.questions[index]
            if not isinstance(question, FreeTextQuestion) or index in session.judgements:
                continue
            try:
                session.judgements[index] = await self.feedback.judged_verdict(
                    question, str(result.user_answer.get("answer", ""))
                )
            except GenerationError as exc:
                logger.warning(
                    "Judgement for session=%s index=%d unavailable, using recorded verdict: %s",
                    session.session_id, index, exc.message,
                )

    async def _narrative(self, prompt: str) -> GroundedText:
        try:
            try:
                return await self.llm.generate_with_grounding(prompt, temperature=0.7, max_tokens=4096)
            except TruncatedResponseError:
                logger.warning("Summary truncated, retrying with a larger token limit")
                return await self.llm.generate_with_grounding(prompt, temperature=0.7, max_tokens=8192)
        except LLMError as exc:
            logger.error("Summary generation failed: %s", exc)
            raise GenerationError(f"Failed to generate summary: {exc}") from exc

    def _validated(self, data: Dict[str, Any], session_id: str) -> Dict[str, Any]:
        overall = str(data.get("overall") or "").strip()
        highlights = _string_list(data.get("highlights"))
        blindspots = _string_list(data.get("blindspots"))
        analysis = str(data.get("detailed_analysis") or data.get("detailedAnalysis") or "").strip()
        missing = []
        if not overall:
            missing.append("overall")
        if not highlights:
            missing.append("highlights")
        if not blindspots:
            missing.append("blindspots")
        if len(analysis) < self.min_analysis_chars:
            missing.append(f"detailed_analysis (>= {self.min_analysis_chars} chars, got {len(analysis)})")
        if missing:
            logger.error("Summary for %s incomplete: %s", session_id, ", ".join(missing))
            raise SummaryIncomplete(f"Summary is missing required content: {', '.join(missing)}", session_id=session_id)
        return {
            "overall": overall,
            "highlights": highlights,
            "blindspots": blindspots,
            "suggestions": _string_list(data.get("suggestions")),
            "detailed_analysis": analysis,
        }

    async def build(self, session: Session) -> Report:
        """Recompute the report from the session's results.

        Results are never touched. A free-text answer without a stored judgement is judged
        here and the judgement kept on the session, so later calls reuse it instead of asking again.
        """
        if not session.results:
            raise OutOfSequence("No answers recorded yet", session_id=session.session_id)

        await self._fill_judgements(session)
        verdicts = effective_verdicts(session.results, session.judgements)
        rows = list(zip(session.results, verdicts))

        grounded = await self._narrative(summary_prompt(rows))
        try:
            data = extract_json_object(grounded.text)
        except ValueError as exc:
            logger.error("Summary for %s was not JSON: %s", session.session_id, grounded.text[:200])
            raise SummaryIncomplete("Summary response was not valid JSON", session_id=session.session_id) from exc
        fields = self._validated(data, session.session_id)

        weak = [r.concept_id for r, v in rows if v in (Verdict.INCORRECT, Verdict.PARTIAL)]
        profile = await self.aggregator.aggregate(
            session.results, session.questions, session.judgements, session.identity.self_rating
        )
        radar = _radar_from(data.get("radar_data") or data.get("radarData"))
        if radar is None:
            radar = RadarData(categories=profile.categories, scores=profile.category_scores)

        logger.info(
            "Summary built session=%s level=%d self_rating=%d weak=%d",
            session.session_id, profile.overall_level, session.identity.self_rating, len(weak),
        )
        return Report(
            **fields,
            learning_resources=self.resources.resources_for(weak),
            radar=radar,
            citations=grounded.citations,
            self_rating=session.identity.self_rating,
            overall_level=profile.overall_level,
            mastery_score=profile.mastery_score,
            answered=len(session.results),
            total_questions=session.total_questions,
        )
