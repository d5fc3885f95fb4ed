"""Coaching catalog schemas."""

from typing import Optional
from pydantic import BaseModel


class CoachingOption(BaseModel):
    """A conversation mode with its own prompt templates."""
    name: str
    prompt_template: str
    summary_prompt_template: str
    abstract_image: Optional[str] = None
    icon: Optional[str] = None

    def render_prompt(self, topic: Optional[str]) -> str:
        """Substitute the topic into the coaching prompt."""
        return self.prompt_template.replace("{user_topic}", topic or "conversation")

    def render_summary_prompt(self, topic: Optional[str]) -> str:
        """Substitute the topic into the feedback summary prompt."""
        return self.summary_prompt_template.replace("{user_topic}", topic or "conversation")


class CoachingExpert(BaseModel):
    """A named coach persona."""
    name: str
    avatar: Optional[str] = None
