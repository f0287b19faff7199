"""
Tests for projects app: credentials, CRUD, autopilot toggle, listings.
"""
import base64
import uuid

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from projects.credentials import (
    CredentialsError,
    ManualCredentials,
    ShopifyCredentials,
    WebflowCredentials,
    WordPressCredentials,
    parse_credentials,
    validate_credentials,
)
from projects.models import Project


WORDPRESS_CREDENTIALS = {
    'domain': 'https://blog.example.com/',
    'authMethod': 'application_password',
    'username': 'admin',
    'applicationPassword': 'abcd efgh ijkl',
}


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def create_user():
    def _create_user(email="test@example.com", password="testpass123"):
        return get_user_model().objects.create_user(
            email=email,
            username=email,
            password=password
        )
    return _create_user


@pytest.fixture
def authenticated_client(api_client, create_user):
    user = create_user()
    refresh = RefreshToken.for_user(user)
    api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {str(refresh.access_token)}')
    return api_client, user


@pytest.fixture
def create_project():
    def _create_project(user, **kwargs):
        defaults = {
            'name': 'Example',
            'site_url': 'https://example.com',
            'cms_provider': 'manual',
        }
        defaults.update(kwargs)
        return Project.objects.create(user=user, **defaults)
    return _create_project


class TestCredentials:

    def test_wordpress_application_password(self):
        credentials = parse_credentials('wordpress', WORDPRESS_CREDENTIALS)
        assert isinstance(credentials, WordPressCredentials)
        assert credentials.host == 'blog.example.com'
        expected = base64.b64encode(b'admin:abcd efgh ijkl').decode()
        assert credentials.auth_header() == {'Authorization': f'Basic {expected}'}

    def test_wordpress_jwt(self):
        credentials = parse_credentials('wordpress', {'domain': 'example.com', 'authMethod': 'jwt', 'jwt': 'tok'})
        assert credentials.auth_header() == {'Authorization': 'Bearer tok'}

    def test_wordpress_incomplete_returns_none(self):
        assert parse_credentials('wordpress', {'domain': 'example.com', 'username': 'admin'}) is None

    @pytest.mark.parametrize('provider', ['wordpress', 'shopify', 'webflow'])
    def test_empty_credentials_return_none(self, provider):
        assert parse_credentials(provider, {}) is None
        assert parse_credentials(provider, None) is None

    def test_manual_always_parses(self):
        assert isinstance(parse_credentials('manual', None), ManualCredentials)

    def test_shopify_strips_domain_and_defaults_version(self):
        credentials = parse_credentials('shopify', {'shop': 'https://my-store.myshopify.com', 'accessToken': 'shpat'})
        assert isinstance(credentials, ShopifyCredentials)
        assert credentials.shop == 'my-store'
        assert credentials.api_version == '2023-10'

    def test_webflow_token_rotation_keeps_refresh_token(self):
        credentials = parse_credentials('webflow', {'siteId': 's1', 'accessToken': 'old', 'refreshToken': 'r1'})
        rotated = credentials.with_access_token('new')
        assert isinstance(rotated, WebflowCredentials)
        assert rotated.access_token == 'new'
        assert rotated.refresh_token == 'r1'

    def test_validate_reports_missing_fields(self):
        with pytest.raises(CredentialsError, match='accessToken'):
            validate_credentials('shopify', {'shop': 'my-store'})

    def test_validate_unknown_provider(self):
        with pytest.raises(CredentialsError):
            validate_credentials('squarespace', {'apiKey': 'x'})


@pytest.mark.django_db
class TestProjectAPI:

    def test_create_project(self, authenticated_client):
        client, user = authenticated_client
        response = client.post('/api/v1/projects/', {
            'name': 'My Blog',
            'site_url': 'https://blog.example.com',
            'cms_provider': 'wordpress',
            'cms_credentials': WORDPRESS_CREDENTIALS,
        }, format='json')
        assert response.status_code == 201
        assert response.data['has_cms_connection'] is True
        assert 'cms_credentials' not in response.data
        project = Project.objects.get(pk=response.data['id'])
        assert project.user == user
        assert project.autopilot_enabled is False

    def test_create_project_with_incomplete_credentials(self, authenticated_client):
        client, _ = authenticated_client
        response = client.post('/api/v1/projects/', {
            'name': 'My Shop',
            'site_url': 'https://shop.example.com',
            'cms_provider': 'shopify',
            'cms_credentials': {'shop': 'my-shop'},
        }, format='json')
        assert response.status_code == 400
        assert 'cms_credentials' in response.data['error']

    def test_create_project_without_credentials_is_manual(self, authenticated_client):
        client, _ = authenticated_client
        response = client.post('/api/v1/projects/', {
            'name': 'My Shop',
            'site_url': 'https://shop.example.com',
            'cms_provider': 'shopify',
        }, format='json')
        assert response.status_code == 201
        assert response.data['has_cms_connection'] is False

    def test_list_only_own_projects(self, authenticated_client, create_user, create_project):
        client, user = authenticated_client
        create_project(user, name='Mine')
        create_project(create_user(email='other@example.com'), name='Theirs')
        response = client.get('/api/v1/projects/')
        assert response.status_code == 200
        names = [p['name'] for p in response.data['results']]
        assert names == ['Mine']

    def test_other_users_project_is_not_found(self, authenticated_client, create_user, create_project):
        client, _ = authenticated_client
        other = create_project(create_user(email='other@example.com'))
        response = client.get(f'/api/v1/projects/{other.pk}/')
        assert response.status_code == 404

    def test_delete_not_allowed(self, authenticated_client, create_project):
        client, user = authenticated_client
        project = create_project(user)
        response = client.delete(f'/api/v1/projects/{project.pk}/')
        assert response.status_code == 405
        assert Project.objects.filter(pk=project.pk).exists()


@pytest.mark.django_db
class TestToggleAutopilot:

    def test_enable_with_default_scopes(self, authenticated_client, create_project):
        client, user = authenticated_client
        project = create_project(user)
        response = client.post(f'/api/v1/projects/{project.pk}/toggle-autopilot/', {'enabled': True}, format='json')
        assert response.status_code == 200
        project.refresh_from_db()
        assert project.autopilot_enabled is True
        assert project.autopilot_scopes == ['meta', 'h1', 'altText', 'robots', 'sitemap']
        assert response.data['dryRunResults']['pendingRecommendations'] == 0

    def test_enable_with_explicit_scopes(self, authenticated_client, create_project):
        client, user = authenticated_client
        project = create_project(user)
        response = client.post(f'/api/v1/projects/{project.pk}/toggle-autopilot/', {
            'enabled': True, 'scopes': ['meta', 'internalLinks'],
        }, format='json')
        assert response.status_code == 200
        project.refresh_from_db()
        assert project.autopilot_scopes == ['meta', 'internalLinks']

    def test_unknown_scope_rejected(self, authenticated_client, create_project):
        client, user = authenticated_client
        project = create_project(user)
        response = client.post(f'/api/v1/projects/{project.pk}/toggle-autopilot/', {
            'enabled': True, 'scopes': ['geoPages'],
        }, format='json')
        assert response.status_code == 400
        project.refresh_from_db()
        assert project.autopilot_enabled is False

    def test_disable(self, authenticated_client, create_project):
        client, user = authenticated_client
        project = create_project(user, autopilot_enabled=True, autopilot_scopes=['meta'])
        response = client.post(f'/api/v1/projects/{project.pk}/toggle-autopilot/', {'enabled': False}, format='json')
        assert response.status_code == 200
        assert response.data['dryRunResults'] is None
        project.refresh_from_db()
        assert project.autopilot_enabled is False
        assert project.autopilot_scopes == ['meta']


@pytest.mark.django_db
class TestProjectListings:

    def test_recommendations_filtered_by_status(self, authenticated_client, create_project):
        from autopilot.models import Recommendation
        client, user = authenticated_client
        project = create_project(user)
        Recommendation.objects.create(project=project, action_type='meta', title='A', target_page='/a', impact='low')
        Recommendation.objects.create(project=project, action_type='h1', title='B', target_page='/b', impact='high')
        Recommendation.objects.create(project=project, action_type='meta', title='C', target_page='/c',
                                      status='completed')

        response = client.get(f'/api/v1/projects/{project.pk}/recommendations/', {'status': 'todo'})
        assert response.status_code == 200
        assert [r['title'] for r in response.data['results']] == ['B', 'A']

    def test_changelog_limit(self, authenticated_client, create_project):
        from autopilot.models import ChangelogEntry
        client, user = authenticated_client
        project = create_project(user)
        for i in range(12):
            ChangelogEntry.objects.create(
                project=project, action_type='meta', description=f'Change {i}',
                rollback_token=str(uuid.uuid4()), rollback_data={'type': 'manual'},
            )

        response = client.get(f'/api/v1/projects/{project.pk}/changelog/')
        assert response.status_code == 200
        assert response.data['count'] == 10

        response = client.get(f'/api/v1/projects/{project.pk}/changelog/', {'limit': 3})
        assert response.data['count'] == 3
        assert response.data['changelog'][0]['rollback_type'] == 'manual'
