"""HCI curriculum loader and daily focus selection.

The curriculum YAML is validated on load; an invalid file raises instead
of silently producing empty prompt context.
"""

import random
from datetime import date
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from enduser.config import get_settings

BUNDLED_CURRICULUM = Path(__file__).with_name("hci_curriculum.yaml")

# First words shorter than this are too common to signal relevance
MIN_KEYWORD_LENGTH = 4


class HCITopic(BaseModel):
    """One curriculum topic."""

    id: str = Field(..., description="Topic ID")
    title: str = Field(..., description="Topic title")
    concepts: list[str] = Field(..., description="Core concepts")
    key_thinkers: list[str] = Field(default_factory=list, description="Key thinkers and works")
    principles: list[str] = Field(..., description="Design principles")
    examples: list[str] = Field(default_factory=list, description="Everyday examples")
    reflections: list[str] = Field(..., description="Questions for the bot to ponder")

    @field_validator("concepts", "principles", "reflections")
    @classmethod
    def validate_non_empty(cls, v: list[str]) -> list[str]:
        """Prompts index into these lists, so they cannot be empty."""
        if not v:
            raise ValueError("must be a non-empty list")
        return v


class HCIFocus(BaseModel):
    """Today's topic plus one reflection picked from it."""

    topic: HCITopic
    reflection: str


class HCICurriculum(BaseModel):
    """Curriculum schema v1.0."""

    schema_version: str = Field(..., description="Schema version (must be 1.0)")
    topics: list[HCITopic] = Field(..., description="Topics in rotation order")

    @field_validator("schema_version")
    @classmethod
    def validate_schema_version(cls, v: str) -> str:
        """Ensure schema version is 1.0."""
        if v != "1.0":
            raise ValueError(f"Schema version must be 1.0, got {v}")
        return v

    @field_validator("topics")
    @classmethod
    def validate_topics(cls, v: list[HCITopic]) -> list[HCITopic]:
        """Ensure at least one topic exists."""
        if not v:
            raise ValueError("At least one topic must be defined")
        return v

    def daily_topic(self, day_of_year: int) -> HCITopic:
        """Rotate through the curriculum by day of year."""
        return self.topics[day_of_year % len(self.topics)]

    def todays_focus(self, today: date | None = None, rng: random.Random | None = None) -> HCIFocus:
        """Get today's topic with a random reflection from it."""
        today = today or date.today()
        topic = self.daily_topic(today.timetuple().tm_yday)
        reflection = (rng or random).choice(topic.reflections)
        return HCIFocus(topic=topic, reflection=reflection)

    def relevant_knowledge(self, text: str, limit: int = 3) -> list[str]:
        """Find curriculum insights related to a piece of conversation.

        A concept or principle matches when it appears in the text, or when
        its first word does.
        """
        text_lower = text.lower()
        insights: list[str] = []

        for topic in self.topics:
            matching_concepts = [c for c in topic.concepts if _matches(c, text_lower)]
            matching_principles = [p for p in topic.principles if _matches(p, text_lower)]
            if matching_concepts or matching_principles:
                insights.extend(topic.reflections)
                insights.extend(matching_concepts)
                insights.extend(matching_principles)

        return insights[:limit]


def _matches(phrase: str, text_lower: str) -> bool:
    phrase_lower = phrase.lower()
    if not text_lower:
        return False
    if phrase_lower in text_lower:
        return True
    first_word = phrase_lower.split(" ")[0]
    return len(first_word) >= MIN_KEYWORD_LENGTH and first_word in text_lower


_curriculum: HCICurriculum | None = None


def load_curriculum(path: str | None = None) -> HCICurriculum:
    """Load and validate the curriculum YAML.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is empty or fails validation
    """
    global _curriculum

    if _curriculum is not None and path is None:
        return _curriculum

    configured = path or get_settings().hci_curriculum_path
    curriculum_path = Path(configured) if configured else BUNDLED_CURRICULUM

    if not curriculum_path.exists():
        raise FileNotFoundError(f"HCI curriculum file not found: {curriculum_path}")

    with open(curriculum_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if not data:
        raise ValueError(f"HCI curriculum file is empty: {curriculum_path}")

    try:
        curriculum = HCICurriculum(**data)
    except ValidationError as e:
        raise ValueError(f"Invalid HCI curriculum in {curriculum_path}: {e}") from e

    if path is None:
        _curriculum = curriculum
    return curriculum
