"""Tests for hostname to service classification."""

import pytest

from service_classifier import ServiceClassifier, extract_service_name


class TestExtractServiceName:

    @pytest.mark.parametrize('hostname, service', [
        ('api.github.com', 'github'),
        ('api.openai.com', 'openai'),
        ('google.serper.dev', 'serper'),
        ('api.anthropic.com', 'anthropic'),
        ('hooks.slack.com', 'slack'),
    ])
    def test_known_hosts(self, hostname, service):
        assert extract_service_name(hostname) == service

    def test_first_label_of_unknown_hosts(self):
        assert extract_service_name('myapi.example.com') == 'myapi'
        assert extract_service_name('service.company.io') == 'service'

    def test_api_prefix_is_skipped(self):
        assert extract_service_name('api.unknown.com') == 'unknown'
        assert extract_service_name('www.example.org') == 'example'

    def test_hostname_is_lowercased(self):
        assert extract_service_name('API.GitHub.com') == 'github'
        assert extract_service_name('MyApi.Example.com') == 'myapi'

    def test_trailing_dot(self):
        assert extract_service_name('api.unknown.com.') == 'unknown'

    @pytest.mark.parametrize('hostname', ['', None, '10.0.0.1', '::1', 'bad_host.example.com', 'a..b'])
    def test_empty_or_malformed_is_absent(self, hostname):
        assert extract_service_name(hostname) is None


class TestServiceClassifier:

    def test_known_only_disables_fallback(self):
        classifier = ServiceClassifier(known_only=True)
        assert classifier.classify('api.github.com') == 'github'
        assert classifier.classify('myapi.example.com') is None

    def test_override_wins(self):
        classifier = ServiceClassifier(override='firecrawl')
        assert classifier.resolve('api.github.com') == 'firecrawl'
        assert classifier.resolve('anything.example.com') == 'firecrawl'
        assert classifier.classify('api.github.com') == 'github'

    def test_resolve_without_override_classifies(self):
        classifier = ServiceClassifier()
        assert classifier.resolve('api.stripe.com') == 'stripe'

    def test_custom_table(self):
        classifier = ServiceClassifier(service_map={'internal.corp.net': 'corp'}, known_only=True)
        assert classifier.classify('internal.corp.net') == 'corp'
        assert classifier.classify('api.github.com') is None
