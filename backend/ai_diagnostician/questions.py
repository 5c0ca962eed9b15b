"""Question, answer and result models.

A question is a discriminated union keyed by ``archetype``. Each variant carries its
own answer key and validates structurally on construction, so anything that reaches a
session (LLM output or fallback bank entry) is known to be internally consistent.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Dict, Iterable, List, Literal, Mapping, Set, Tuple, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)

from .errors import InvalidAnswer


class Archetype(str, Enum):
    MATCH = "match"
    BUCKET = "bucket"
    SINGLE_SELECT = "single_select"
    TRUE_FALSE = "true_false"
    FREE_TEXT = "free_text"


# free_text is reserved for the capstone question
BASE_ARCHETYPES: Tuple[Archetype, ...] = (
    Archetype.MATCH,
    Archetype.BUCKET,
    Archetype.SINGLE_SELECT,
    Archetype.TRUE_FALSE,
)

ARCHETYPE_LABELS: Dict[Archetype, str] = {
    Archetype.MATCH: "Matching",
    Archetype.BUCKET: "Categorization",
    Archetype.SINGLE_SELECT: "Multiple Choice",
    Archetype.TRUE_FALSE: "True/False",
    Archetype.FREE_TEXT: "Short Answer",
}


class Verdict(str, Enum):
    CORRECT = "correct"
    PARTIAL = "partial"
    INCORRECT = "incorrect"


Role = Literal["student", "professional", "educator", "researcher", "entrepreneur", "other"]


class Identity(BaseModel):
    age: int = Field(ge=5, le=120)
    role: Role = "other"
    self_rating: int = Field(ge=1, le=5, description="Self-assessed AI literacy, 1 (beginner) to 5 (expert)")


class Choice(BaseModel):
    id: str = Field(min_length=1)
    text: str = Field(min_length=1)


def _unique_ids(items: Iterable[Choice], field_name: str) -> Set[str]:
    ids: Set[str] = set()
    for item in items:
        if item.id in ids:
            raise ValueError(f"duplicate id {item.id!r} in {field_name}")
        ids.add(item.id)
    return ids


class _QuestionBase(BaseModel):
    model_config = ConfigDict(extra="ignore")

    prompt_text: str
    explanation: str
    concept_id: str

    @field_validator("prompt_text", "explanation", "concept_id")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class MatchQuestion(_QuestionBase):
    archetype: Literal["match"] = "match"
    left_items: List[Choice] = Field(min_length=1)
    right_items: List[Choice] = Field(min_length=1)
    correct_pairs: List[Tuple[str, str]] = Field(min_length=1)

    @model_validator(mode="after")
    def _check_answer_key(self) -> "MatchQuestion":
        left_ids = _unique_ids(self.left_items, "left_items")
        right_ids = _unique_ids(self.right_items, "right_items")
        if len(self.correct_pairs) != len(self.left_items):
            raise ValueError("correct_pairs must pair every left item exactly once")
        seen_left: Set[str] = set()
        seen_right: Set[str] = set()
        for left, right in self.correct_pairs:
            if left not in left_ids or right not in right_ids:
                raise ValueError(f"correct_pairs references undeclared id: {left!r} -> {right!r}")
            if left in seen_left or right in seen_right:
                raise ValueError("correct_pairs must be one-to-one")
            seen_left.add(left)
            seen_right.add(right)
        return self


class BucketQuestion(_QuestionBase):
    archetype: Literal["bucket"] = "bucket"
    cards: List[Choice] = Field(min_length=1)
    buckets: List[Choice] = Field(min_length=1)
    correct_assignment: Dict[str, str] = Field(min_length=1)

    @model_validator(mode="after")
    def _check_answer_key(self) -> "BucketQuestion":
        card_ids = _unique_ids(self.cards, "cards")
        bucket_ids = _unique_ids(self.buckets, "buckets")
        if set(self.correct_assignment) != card_ids:
            raise ValueError("correct_assignment must cover exactly the declared cards")
        stray = set(self.correct_assignment.values()) - bucket_ids
        if stray:
            raise ValueError(f"correct_assignment references undeclared buckets: {sorted(stray)}")
        return self

    @property
    def total(self) -> int:
        return len(self.correct_assignment)


class SingleSelectQuestion(_QuestionBase):
    archetype: Literal["single_select"] = "single_select"
    options: List[Choice] = Field(min_length=2)
    correct_option_ids: List[str] = Field(min_length=1)

    @model_validator(mode="after")
    def _check_answer_key(self) -> "SingleSelectQuestion":
        option_ids = _unique_ids(self.options, "options")
        if len(set(self.correct_option_ids)) != len(self.correct_option_ids):
            raise ValueError("correct_option_ids contains duplicates")
        stray = set(self.correct_option_ids) - option_ids
        if stray:
            raise ValueError(f"correct_option_ids references undeclared options: {sorted(stray)}")
        return self


class TrueFalseQuestion(_QuestionBase):
    archetype: Literal["true_false"] = "true_false"
    statement: str = Field(min_length=1)
    correct_answer: StrictBool


class FreeTextQuestion(_QuestionBase):
    archetype: Literal["free_text"] = "free_text"
    scenario: str = Field(min_length=1)
    key_points: List[str] = Field(min_length=2, max_length=4)
    expected_length_hint: str = "50-150 words"

    @field_validator("key_points")
    @classmethod
    def _key_points_not_blank(cls, value: List[str]) -> List[str]:
        points = [p.strip() for p in value]
        if any(not p for p in points):
            raise ValueError("key_points must not contain blank entries")
        return points


Question = Annotated[
    Union[MatchQuestion, BucketQuestion, SingleSelectQuestion, TrueFalseQuestion, FreeTextQuestion],
    Field(discriminator="archetype"),
]

QUESTION_ADAPTER: TypeAdapter = TypeAdapter(Question)


def parse_question(data: Mapping[str, Any]) -> Question:
    """Validate a raw mapping into the matching question variant (raises ValidationError)."""
    return QUESTION_ADAPTER.validate_python(data)


def archetype_of(question: Question) -> Archetype:
    return Archetype(question.archetype)


def correct_answer_payload(question: Question) -> Dict[str, Any]:
    """The answer key in the same wire shape a client submits."""
    if isinstance(question, MatchQuestion):
        return {"matches": [list(pair) for pair in question.correct_pairs]}
    if isinstance(question, BucketQuestion):
        return {"assignments": dict(question.correct_assignment)}
    if isinstance(question, SingleSelectQuestion):
        return {"selected": list(question.correct_option_ids)}
    if isinstance(question, TrueFalseQuestion):
        return {"answer": question.correct_answer}
    if isinstance(question, FreeTextQuestion):
        return {"answer": "; ".join(question.key_points), "key_points": list(question.key_points)}
    raise TypeError(f"Unsupported question type: {type(question).__name__}")


def public_view(question: Question) -> Dict[str, Any]:
    """Question payload for clients, without the answer key."""
    hidden = {"correct_pairs", "correct_assignment", "correct_option_ids", "correct_answer", "key_points", "explanation"}
    return question.model_dump(mode="json", exclude=hidden)


# ---------------------------------------------------------------------------
# Answers
# ---------------------------------------------------------------------------

class MatchAnswer(BaseModel):
    matches: List[Tuple[str, str]] = Field(default_factory=list)


class BucketAnswer(BaseModel):
    assignments: Dict[str, str] = Field(default_factory=dict)


class SingleSelectAnswer(BaseModel):
    selected: List[str] = Field(default_factory=list)


class TrueFalseAnswer(BaseModel):
    answer: StrictBool


class FreeTextAnswer(BaseModel):
    answer: str = ""


UserAnswer = Union[MatchAnswer, BucketAnswer, SingleSelectAnswer, TrueFalseAnswer, FreeTextAnswer]

_ANSWER_MODELS: Dict[Archetype, type] = {
    Archetype.MATCH: MatchAnswer,
    Archetype.BUCKET: BucketAnswer,
    Archetype.SINGLE_SELECT: SingleSelectAnswer,
    Archetype.TRUE_FALSE: TrueFalseAnswer,
    Archetype.FREE_TEXT: FreeTextAnswer,
}


def parse_answer(question: Question, payload: Any) -> UserAnswer:
    """Coerce a client payload into the answer shape of ``question``.

    Raises InvalidAnswer when the payload does not fit.
    """
    model = _ANSWER_MODELS[archetype_of(question)]
    if isinstance(payload, model):
        return payload
    if isinstance(payload, BaseModel):
        payload = payload.model_dump()
    if not isinstance(payload, Mapping):
        raise InvalidAnswer(f"Answer for a {question.archetype} question must be an object")
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        first = exc.errors()[0]
        where = ".".join(str(p) for p in first.get("loc", ()))
        raise InvalidAnswer(f"Answer does not fit a {question.archetype} question: {where} {first.get('msg')}".strip()) from exc


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

class QuestionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    question_index: int = Field(ge=0)
    concept_id: str
    archetype: Archetype
    verdict: Verdict
    user_answer: Dict[str, Any]
    correct_answer: Dict[str, Any]


class Feedback(BaseModel):
    message: str
    is_correct: bool
