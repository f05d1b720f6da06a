import pytest
from personnel.config.settings import load_settings, validate_settings, SETTINGS


def _cfg(**overrides):
    cfg = {key: default for key, (default, _) in SETTINGS.items()}
    cfg.update(overrides)
    return cfg


def test_defaults_are_valid(monkeypatch):
    for key in SETTINGS:
        monkeypatch.delenv(key, raising=False)
    cfg = load_settings()
    assert cfg['QUESTION_PASS_THRESHOLD'] == 0.7
    assert cfg['ENTRY_RANK_LEVEL'] == 1
    assert cfg['ENTRY_DEPARTMENT'] == 'Patrol'
    assert cfg['HIRE_ASSIGNS_BADGE'] is True
    assert cfg['OUTBOX_MAX_ATTEMPTS'] == 5


def test_environment_and_override_precedence(monkeypatch):
    monkeypatch.setenv('QUESTION_PASS_THRESHOLD', '0.5')
    monkeypatch.setenv('HIRE_ASSIGNS_BADGE', 'no')
    monkeypatch.setenv('LOG_LEVEL', 'debug')
    cfg = load_settings({'ENTRY_RANK_LEVEL': '2'})
    assert cfg['QUESTION_PASS_THRESHOLD'] == 0.5
    assert cfg['HIRE_ASSIGNS_BADGE'] is False
    assert cfg['LOG_LEVEL'] == 'DEBUG'
    assert cfg['ENTRY_RANK_LEVEL'] == 2


@pytest.mark.parametrize('overrides', [
    {'QUESTION_PASS_THRESHOLD': 0},
    {'QUESTION_PASS_THRESHOLD': 1.5},
    {'ENTRY_RANK_LEVEL': 0},
    {'ENTRY_RANK_LEVEL': 18},
    {'BADGE_ALLOCATION_RETRIES': 0},
    {'OUTBOX_MAX_ATTEMPTS': 0},
    {'INVITE_MAX_USES': -1},
])
def test_invalid_settings_rejected(overrides):
    with pytest.raises(ValueError):
        validate_settings(_cfg(**overrides))


def test_uncoercible_value_rejected():
    with pytest.raises(ValueError) as exc:
        load_settings({'ENTRY_RANK_LEVEL': 'captain'})
    assert 'ENTRY_RANK_LEVEL' in str(exc.value)


def test_app_config_reflects_overrides(app_instance):
    assert app_instance.config['JWT_SECRET_KEY'] == 'test-secret-key-with-enough-length-123'
    assert app_instance.config['DATABASE_URL'].endswith(':memory:')
