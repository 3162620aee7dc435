"""
Remote fallback classification for subjects the keyword table cannot place.

Wraps a single OpenAI chat-completion call. Any failure surfaces as
ClassificationUnavailable; the caller decides what to do with the row.
"""

import openai
from openai import OpenAI

from subject_taxonomy import CATEGORIES

DEFAULT_MODEL = 'gpt-4'
DEFAULT_MAX_TOKENS = 10

PROMPT_TEMPLATE = """
I want you to categorize the following subject into one of these categories:
- MATH: Mathematics, algebra, geometry, calculus
- ELA: English language arts, reading, writing, literacy, literature (but not ESL/foreign language)
- SCI: Science, biology, chemistry, physics, astronomy, etc.
- HIST: History, social studies, geography, civics, economics, government
- CTE: Career/technical education, vocational, technology, business, computer science
- ART: Visual arts, theater, etc
- OTHER: Everything else (arts, PE, foreign languages, health, etc.)

Subject: "{subject}"
Category:"""


class ClassificationUnavailable(Exception):
    pass


def build_prompt(subject: str) -> str:
    return PROMPT_TEMPLATE.format(subject=subject or '')


class OpenAIFallbackClassifier:
    """Classify one subject per request against the coarse fallback label set."""

    def __init__(self, model: str = DEFAULT_MODEL, max_tokens: int = DEFAULT_MAX_TOKENS,
                 api_key: str = None, client=None):
        self.model = model
        self.max_tokens = max_tokens
        self.client = client if client is not None else OpenAI(api_key=api_key)

    def classify(self, subject: str) -> str:
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[{'role': 'user', 'content': build_prompt(subject)}],
                max_tokens=self.max_tokens,
            )
        except openai.OpenAIError as e:
            raise ClassificationUnavailable(f"Fallback request failed for '{subject}': {e}") from e

        if not response.choices:
            raise ClassificationUnavailable(f"Fallback returned no choices for '{subject}'")
        label = (response.choices[0].message.content or '').strip()
        if not label:
            raise ClassificationUnavailable(f"Fallback returned an empty label for '{subject}'")
        if label not in CATEGORIES:
            raise ClassificationUnavailable(f"Fallback returned unknown label '{label}' for '{subject}'")
        return label
