"""Unit tests for config.py"""

import pytest

from flowbridge.config import load_config


@pytest.fixture(autouse=True)
def no_project_config(tmp_path, monkeypatch):
    """Run every test from an empty directory so no config.yaml leaks in."""
    monkeypatch.chdir(tmp_path)


def test_load_config_defaults():
    """Settings defaults apply when nothing else is set."""
    settings = load_config()
    assert settings.output_dir == "dist"
    assert settings.embed_soft_limit == 40_960
    assert settings.embed_hard_limit == 51_200
    assert settings.reserved_prefix == "w-"
    assert settings.generation_url is None


def test_load_config_uses_env(monkeypatch):
    """FLOWBRIDGE_OUTPUT_DIR env var is picked up by load_config."""
    monkeypatch.setenv("FLOWBRIDGE_OUTPUT_DIR", "build")
    assert load_config().output_dir == "build"


def test_load_config_env_overrides_config_yaml(tmp_path, monkeypatch):
    """Env vars take precedence over config.yaml."""
    (tmp_path / "config.yaml").write_text("embed_soft_limit: 1000\nmax_depth: 20\n")
    monkeypatch.setenv("FLOWBRIDGE_EMBED_SOFT_LIMIT", "2000")
    settings = load_config()
    assert settings.embed_soft_limit == 2000
    assert settings.max_depth == 20


def test_load_config_cli_overrides_env(monkeypatch):
    """A non-None CLI override beats the env var; None overrides are ignored."""
    monkeypatch.setenv("FLOWBRIDGE_OUTPUT_DIR", "build")
    settings = load_config(overrides={"output_dir": "cli-out", "generation_url": None})
    assert settings.output_dir == "cli-out"
    assert settings.generation_url is None


def test_load_config_env_bool(monkeypatch):
    """FLOWBRIDGE_ALLOW_CHUNKING is coerced to bool."""
    monkeypatch.setenv("FLOWBRIDGE_ALLOW_CHUNKING", "false")
    assert load_config().allow_chunking is False


def test_load_config_env_json_mapping(monkeypatch):
    """Mapping fields accept a JSON object from the environment."""
    monkeypatch.setenv("FLOWBRIDGE_PSEUDO_STATES", '{"hover": "hover"}')
    settings = load_config()
    assert settings.pseudo_states == {"hover": "hover"}
    assert not settings.vocabulary().is_valid_key("focus")


def test_load_config_yaml_breakpoints(tmp_path):
    """Breakpoints can be redefined in config.yaml."""
    (tmp_path / "config.yaml").write_text(
        "breakpoints:\n  main: {kind: base}\n  phone: {kind: max, width: 600}\n")
    vocabulary = load_config().vocabulary()
    assert vocabulary.map_width("max", 500) == ("phone", 600)


def test_load_config_invalid_yaml(tmp_path):
    """load_config raises ValueError when config.yaml contains invalid YAML."""
    (tmp_path / "config.yaml").write_text("key: [unclosed\n")
    with pytest.raises(ValueError, match="Invalid config.yaml"):
        load_config()


def test_load_config_yaml_not_mapping(tmp_path):
    """A config.yaml holding a list is rejected."""
    (tmp_path / "config.yaml").write_text("- a\n- b\n")
    with pytest.raises(ValueError, match="expected a mapping"):
        load_config()


def test_load_config_invalid_value(monkeypatch):
    """Values failing validation raise ValueError."""
    monkeypatch.setenv("FLOWBRIDGE_LOG_LEVEL", "LOUD")
    with pytest.raises(ValueError, match="Invalid configuration"):
        load_config()


def test_gate_options_follow_settings():
    """gate_options carries limits and the reserved prefix through."""
    options = load_config(overrides={"embed_soft_limit": 10, "embed_hard_limit": 20, "reserved_prefix": "x-"}).gate_options()
    assert (options.soft_limit, options.hard_limit, options.reserved_prefix) == (10, 20, "x-")


def test_detection_options_follow_settings():
    """detection_options carries the implicit pattern and root selector."""
    options = load_config(overrides={"implicit_section_pattern": "^blk-", "alt_root_selector": ".tokens"}).detection_options()
    assert options.implicit_pattern == "^blk-"
    assert options.css.alt_root_selector == ".tokens"
