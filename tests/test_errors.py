from __future__ import annotations

from specsync.errors import (
    GitHubAPIError,
    InputError,
    PrerequisiteError,
    UsageError,
    classify_error,
    redact,
)


def test_classify_rate_limit():
    info = classify_error(RuntimeError('API Rate Limit Exceeded'))
    assert info.category == 'github.rate_limit'
    assert info.transient is True


def test_classify_network():
    info = classify_error(RuntimeError('Connection reset by peer'))
    assert info.category == 'network'
    assert info.transient is True


def test_classify_generic():
    info = classify_error(ValueError('Some other problem'))
    assert info.category == 'generic'
    assert info.transient is False


def test_prerequisite_error_keeps_remediation():
    info = classify_error(PrerequisiteError('Not authenticated with GitHub', remediation='gh auth login'))
    assert info.category == 'prerequisite'
    assert info.details == {'remediation': 'gh auth login'}


def test_input_error_fragment_is_redacted():
    info = classify_error(InputError('bad payload', fragment='{"token": "ghp_ABCDEFGHIJKLMNOPQRSTUVWX"}'))
    assert info.category == 'input'
    assert info.details is not None
    assert 'ghp_' not in info.details['fragment']


def test_api_error_payload_in_details():
    info = classify_error(GitHubAPIError('GraphQL query failed', payload=[{'message': 'nope'}]))
    assert info.category == 'github'
    assert info.details is not None
    assert 'nope' in info.details['payload']


def test_usage_error_exit_code():
    assert UsageError('bad').exit_code == 2
    assert InputError('bad').exit_code == 1


def test_redact_tokens():
    sample = 'Token ghp_ABCDEFGHIJKLMNOPQRSTUVWX plus github_pat_1234567890abcdefghijkl and gho_ABCDEFGHIJKLMNOPQRSTUV'
    redacted = redact(sample)
    assert 'ghp_' not in redacted
    assert 'github_pat_' not in redacted
    assert 'gho_' not in redacted
    assert redacted.count('<redacted>') == 3
