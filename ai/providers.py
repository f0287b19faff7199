"""
AI provider integration: OpenAI rewrites of autopilot suggestions.

Optional. Without an API key the heuristic suggestions are kept as-is,
and any provider failure falls back to them too.
"""
import json
import logging
import re

import openai

logger = logging.getLogger(__name__)

OPENAI_MODEL = "gpt-4o-mini"
TEMPERATURE = 0.3
MAX_TOKENS = 300

SYSTEM_PROMPT = (
    "You are an SEO copywriter. You receive one on-page SEO fix for a website "
    "and return a better value for it. Titles stay under 60 characters, meta "
    "descriptions between 120 and 155 characters, H1s under 70 characters and "
    "image alt text under 125 characters. Never invent facts about the business. "
    'Respond with JSON only: {"suggested_value": "..."}'
)

FIELD_LABELS = {
    'title': 'page title tag',
    'description': 'meta description',
    'h1': 'H1 heading',
    'altText': 'image alt text',
}


def _clean_json(text: str) -> dict:
    """Strip markdown fences and parse JSON."""
    cleaned = re.sub(r'```(?:json)?\s*', '', text).strip()
    cleaned = cleaned.rstrip('`').strip()
    return json.loads(cleaned)


def _build_user_message(context_payload: dict) -> str:
    return (
        f"<context>\n{json.dumps(context_payload, indent=2)}\n</context>\n\n"
        f"Write the improved {FIELD_LABELS.get(context_payload['field'], context_payload['field'])}."
    )


class SuggestionWriter:
    """Rewrites a recommendation's suggested value with an OpenAI chat model."""

    def __init__(self, api_key: str, model: str = OPENAI_MODEL, client=None):
        self.model = model
        self._client = client or openai.OpenAI(api_key=api_key)

    @classmethod
    def from_config(cls, config):
        """A writer when an API key is configured, else None."""
        if not config.openai_api_key:
            return None
        return cls(config.openai_api_key, model=config.openai_model)

    def rewrite(self, recommendation, site_name=''):
        """
        Return an improved suggested value, or None to keep the heuristic one.
        """
        page_data = (recommendation.metadata or {}).get('pageData') or {}
        field = recommendation.change_payload().popitem()[0]
        context_payload = {
            'site_name': site_name,
            'page_url': recommendation.target_page,
            'page_title': page_data.get('title', ''),
            'issue': recommendation.description,
            'field': field,
            'current_value': recommendation.current_value,
            'heuristic_suggestion': recommendation.suggested_value,
        }
        if recommendation.target_element:
            context_payload['image'] = recommendation.target_element

        try:
            parsed = self._call_openai(SYSTEM_PROMPT, _build_user_message(context_payload))
        except (openai.OpenAIError, ValueError) as e:
            logger.warning(f"OpenAI rewrite failed for {recommendation.target_page}: {e}")
            return None

        value = parsed.get('suggested_value') if isinstance(parsed, dict) else None
        if not isinstance(value, str) or not value.strip():
            return None
        return value.strip()

    def _call_openai(self, system_prompt: str, user_message: str) -> dict:
        response = self._client.chat.completions.create(
            model=self.model,
            temperature=TEMPERATURE,
            max_tokens=MAX_TOKENS,
            response_format={"type": "json_object"},
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
        )
        text = response.choices[0].message.content or ''
        return _clean_json(text)
