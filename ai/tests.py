"""
Tests for the OpenAI suggestion writer.
"""
from types import SimpleNamespace

import openai
import pytest
from django.contrib.auth import get_user_model

from ai.providers import SuggestionWriter, _clean_json
from autopilot.config import AutopilotConfig
from autopilot.issue_reporter import IssueReporter
from autopilot.models import Recommendation
from projects.models import Project


class FakeCompletions:

    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def fake_client(content=None, error=None):
    return SimpleNamespace(chat=SimpleNamespace(completions=FakeCompletions(content, error)))


def meta_recommendation():
    return Recommendation(
        action_type='meta',
        title='Add missing page title',
        description='Create an SEO-optimized title tag for this page',
        target_page='https://blog.example.com/blog/my-post',
        suggested_value='My Post | Example Blog',
        metadata={'field': 'title', 'pageData': {'title': ''}},
    )


class TestSuggestionWriter:

    def test_rewrite_returns_model_value(self):
        client = fake_client('{"suggested_value": "  Ten Tips for Better Posts | Example Blog "}')
        writer = SuggestionWriter('sk-test', client=client)

        value = writer.rewrite(meta_recommendation(), site_name='Example Blog')

        assert value == 'Ten Tips for Better Posts | Example Blog'
        call = client.chat.completions.calls[0]
        assert call['model'] == 'gpt-4o-mini'
        assert call['response_format'] == {'type': 'json_object'}
        assert 'page title tag' in call['messages'][1]['content']
        assert '"site_name": "Example Blog"' in call['messages'][1]['content']

    def test_provider_error_keeps_heuristic(self):
        writer = SuggestionWriter('sk-test', client=fake_client(error=openai.OpenAIError('quota exceeded')))
        assert writer.rewrite(meta_recommendation()) is None

    def test_unparseable_reply_keeps_heuristic(self):
        writer = SuggestionWriter('sk-test', client=fake_client('Sure! Here is a title: Great Post'))
        assert writer.rewrite(meta_recommendation()) is None

    def test_empty_value_keeps_heuristic(self):
        writer = SuggestionWriter('sk-test', client=fake_client('{"suggested_value": "  "}'))
        assert writer.rewrite(meta_recommendation()) is None

    def test_from_config_without_key(self):
        assert SuggestionWriter.from_config(AutopilotConfig(openai_api_key='')) is None

    def test_clean_json_strips_fences(self):
        assert _clean_json('```json\n{"suggested_value": "x"}\n```') == {'suggested_value': 'x'}


@pytest.mark.django_db
class TestReporterRewrite:

    @pytest.fixture
    def project(self):
        user = get_user_model().objects.create_user(
            email='test@example.com', username='test@example.com', password='testpass123',
        )
        return Project.objects.create(
            user=user,
            name='Example Blog',
            site_url='https://blog.example.com',
            site_script_status='connected',
            autopilot_enabled=True,
            autopilot_scopes=['meta', 'h1'],
        )

    def test_rewritten_value_is_stored(self, project):
        writer = SuggestionWriter('sk-test', client=fake_client('{"suggested_value": "A Better Title | Example Blog"}'))
        IssueReporter(suggestion_writer=writer).report(project.pk, 'https://blog.example.com/blog/my-post', [
            {'category': 'meta', 'type': 'missing_title', 'description': 'Page is missing a title tag',
             'priority': 'high'},
        ])
        rec = Recommendation.objects.get(project=project)
        assert rec.suggested_value == 'A Better Title | Example Blog'
        assert rec.metadata['heuristicSuggestion'] == 'My Post | Example Blog'

    def test_manual_only_is_not_rewritten(self, project):
        client = fake_client('{"suggested_value": "ignored"}')
        IssueReporter(suggestion_writer=SuggestionWriter('sk-test', client=client)).report(
            project.pk, 'https://blog.example.com/', [
                {'category': 'h1', 'type': 'multiple_h1', 'description': 'Found 2 H1 tags', 'priority': 'high'},
            ],
        )
        assert Recommendation.objects.get(project=project).suggested_value == 'Convert additional H1s to H2s'
        assert client.chat.completions.calls == []
