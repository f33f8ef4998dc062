import pytest
from pydantic import ValidationError

from Labelstage.config import Settings

TOML = """
[app]
env = "staging"

[database]
url = "postgresql+asyncpg://labels:secret@db:5432/labels"

[materializer]
flush_policy = "EAGER"
max_nesting_depth = 8
max_concurrency = 2

[logging]
level = "debug"
console = false
to_file = "warning"
"""


@pytest.fixture
def in_tmp(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for var in ("DATABASE_URL", "MATERIALIZER_FLUSH_POLICY", "MATERIALIZER_MAX_CONCURRENCY"):
        monkeypatch.delenv(var, raising=False)
    return tmp_path


def test_defaults_without_config(in_tmp):
    s = Settings()
    assert s.materializer_flush_policy == "deferred"
    assert s.materializer_max_nesting_depth == 32
    assert s.materializer_max_concurrency == 4
    assert s.database_url == "sqlite+aiosqlite:///./labelstage.sqlite3"
    assert s.logging_file == "NONE"


def test_toml_sections_are_mapped(in_tmp):
    (in_tmp / "config.toml").write_text(TOML)
    s = Settings()
    assert s.env == "staging"
    assert s.database_url.startswith("postgresql+asyncpg://")
    assert s.materializer_flush_policy == "eager"
    assert s.materializer_max_nesting_depth == 8
    assert s.materializer_max_concurrency == 2
    assert s.logging_level == "debug"
    assert s.logging_console == "NONE"
    assert s.logging_file == "WARNING"


def test_env_overrides_toml(in_tmp, monkeypatch):
    (in_tmp / "config.toml").write_text(TOML)
    monkeypatch.setenv("MATERIALIZER_FLUSH_POLICY", "deferred")
    monkeypatch.setenv("MATERIALIZER_MAX_CONCURRENCY", "16")
    s = Settings()
    assert s.materializer_flush_policy == "deferred"
    assert s.materializer_max_concurrency == 16


def test_dotenv_overrides_env(in_tmp, monkeypatch):
    (in_tmp / ".env").write_text("MATERIALIZER_FLUSH_POLICY=eager\n")
    monkeypatch.setenv("MATERIALIZER_FLUSH_POLICY", "deferred")
    assert Settings().materializer_flush_policy == "eager"


def test_init_overrides_everything(in_tmp, monkeypatch):
    monkeypatch.setenv("MATERIALIZER_FLUSH_POLICY", "eager")
    assert Settings(materializer_flush_policy="deferred").materializer_flush_policy == "deferred"


def test_invalid_values_rejected(in_tmp):
    with pytest.raises(ValidationError):
        Settings(materializer_flush_policy="sometimes")
    with pytest.raises(ValidationError):
        Settings(materializer_max_concurrency=0)
