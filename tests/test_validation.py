import pytest

from podweave.exceptions import ConfigurationError, InvalidSelectorError
from podweave.validation import (
    int_from_env, validate_capacity, validate_host, validate_namespace, validate_port,
    validate_selector, validate_server_url, validate_tail_lines
)


@pytest.mark.parametrize('selector', ['app=web', ' app=web ', 'app=web,tier!=cache', 'env in (prod, staging),app', '!canary'])
def test_valid_selectors(selector):
    assert validate_selector(selector) == selector.strip()


@pytest.mark.parametrize('selector', ['', '   ', 'app=web,,tier=x', ',app=web', 'env in (prod', 'env in prod)', None])
def test_invalid_selectors(selector):
    with pytest.raises(InvalidSelectorError):
        validate_selector(selector)


def test_namespaces():
    assert validate_namespace(' kube-system ') == 'kube-system'
    for bad in ['', 'Prod', '-prod', 'prod_1', 'a' * 64]:
        with pytest.raises(ConfigurationError):
            validate_namespace(bad)


def test_port_and_host():
    assert validate_port(8080) == 8080
    for bad in [0, 65536, '8080', True]:
        with pytest.raises(ConfigurationError):
            validate_port(bad)
    assert validate_host(' 0.0.0.0 ') == '0.0.0.0'
    with pytest.raises(ConfigurationError):
        validate_host(' ')
    with pytest.raises(ConfigurationError):
        validate_host('h' * 254)


def test_capacity_and_tail_lines():
    assert validate_capacity(1) == 1
    assert validate_tail_lines(0) == 0
    with pytest.raises(ConfigurationError):
        validate_capacity(0)
    with pytest.raises(ConfigurationError):
        validate_tail_lines(-1)


def test_server_url():
    assert validate_server_url('https://dash.example.com/') == 'https://dash.example.com'
    assert validate_server_url('ws://localhost:8080') == 'ws://localhost:8080'
    for bad in ['', 'localhost:8080', 'ftp://host', 'http://']:
        with pytest.raises(ConfigurationError):
            validate_server_url(bad)


def test_int_from_env(monkeypatch):
    monkeypatch.delenv('PODWEAVE_TEST_INT', raising=False)
    assert int_from_env('PODWEAVE_TEST_INT', 7) == 7
    monkeypatch.setenv('PODWEAVE_TEST_INT', '42')
    assert int_from_env('PODWEAVE_TEST_INT', 7) == 42
    monkeypatch.setenv('PODWEAVE_TEST_INT', 'lots')
    assert int_from_env('PODWEAVE_TEST_INT', 7) == 7
