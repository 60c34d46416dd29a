"""
Tests for configuration loading — file lookup, env overrides, validation.
"""

import textwrap
from pathlib import Path

import pytest

from devbox.core.config.loader import (
    env_overrides,
    find_config_file,
    load_config,
    unknown_keys,
)
from devbox.core.errors import ConfigError
from devbox.core.use_cases.config_check import check_config


def _write(tmp_path: Path, body: str) -> Path:
    path = tmp_path / "devbox.yml"
    path.write_text(textwrap.dedent(body))
    return path


class TestFindConfig:
    def test_explicit_path_must_exist(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            find_config_file(tmp_path / "nope.yml", env={})

    def test_env_var_path(self, tmp_path: Path):
        path = _write(tmp_path, "version: 1\n")
        assert find_config_file(None, env={"DEVBOX_CONFIG": str(path)}) == path

    def test_env_var_path_must_exist(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="DEVBOX_CONFIG"):
            find_config_file(None, env={"DEVBOX_CONFIG": str(tmp_path / "gone.yml")})

    def test_default_location_optional(self, tmp_path: Path, monkeypatch):
        monkeypatch.setattr(Path, "home", lambda: tmp_path)
        assert find_config_file(None, env={}) is None


class TestLoadConfig:
    def test_defaults(self, tmp_path: Path):
        config = load_config(None, env={"DEVBOX_ROOT": str(tmp_path)})
        assert config.root == tmp_path
        assert config.go.version == "latest"
        assert config.go.fallback == "1.21.6"
        assert config.ssh.key_type == "ed25519"
        assert config.git.default_branch == "main"
        assert config.zsh.theme == "spaceship"

    def test_file_values(self, tmp_path: Path):
        path = _write(tmp_path, """\
            identity:
              name: Ada Lovelace
              email: ada@example.com
            go:
              version: go1.22.1
            packages: [htop, jq]
            skip: [docker-group]
        """)
        config = load_config(path, env={})
        assert config.identity.complete
        assert config.go.version == "go1.22.1"
        assert config.packages == ["htop", "jq"]
        assert config.skip == ["docker-group"]

    def test_precedence_flag_over_env_over_file(self, tmp_path: Path):
        path = _write(tmp_path, """\
            identity:
              name: From File
              email: file@example.com
            go:
              fallback: 1.20.1
        """)
        env = {"DEVBOX_GIT_NAME": "From Env", "DEVBOX_GO_FALLBACK_VERSION": "1.21.0"}
        config = load_config(path, env=env, overrides={"identity.name": "From Flag"})
        assert config.identity.name == "From Flag"
        assert config.identity.email == "file@example.com"
        assert config.go.fallback == "1.21.0"

    def test_noninteractive_env(self):
        assert load_config(None, env={"DEVBOX_NONINTERACTIVE": "yes"}).non_interactive
        assert not load_config(None, env={"DEVBOX_NONINTERACTIVE": "0"}).non_interactive

    def test_root_expands_home_paths(self, tmp_path: Path):
        config = load_config(None, env={"DEVBOX_ROOT": str(tmp_path)})
        assert config.path("~/.zshrc") == tmp_path / ".zshrc"
        assert config.path("/usr/local") == Path("/usr/local")

    def test_invalid_yaml(self, tmp_path: Path):
        path = _write(tmp_path, "identity: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(path, env={})

    def test_not_a_mapping(self, tmp_path: Path):
        path = _write(tmp_path, "- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(path, env={})

    def test_wrong_type(self, tmp_path: Path):
        path = _write(tmp_path, "ssh:\n  key_type: dsa\n")
        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_config(path, env={})

    def test_empty_plugin_list(self, tmp_path: Path):
        path = _write(tmp_path, "zsh:\n  plugins: []\n")
        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_config(path, env={})

    def test_bad_pinned_version(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="go.version"):
            load_config(None, env={"DEVBOX_GO_VERSION": "banana"})

    def test_bad_fallback_version(self):
        with pytest.raises(ConfigError, match="go.fallback"):
            load_config(None, env={"DEVBOX_GO_FALLBACK_VERSION": "newest"})

    def test_empty_file_is_defaults(self, tmp_path: Path):
        path = _write(tmp_path, "")
        assert load_config(path, env={}).go.version == "latest"


class TestHelpers:
    def test_env_overrides_ignores_empty(self):
        assert env_overrides({"DEVBOX_GIT_NAME": "", "UNRELATED": "x"}) == {}

    def test_unknown_keys(self):
        data = {"identity": {"name": "x", "nickname": "y"}, "colour": "blue"}
        assert sorted(unknown_keys(data)) == ["colour", "identity.nickname"]


class TestConfigCheck:
    def test_valid_file(self, tmp_path: Path):
        path = _write(tmp_path, f"""\
            root: {tmp_path}
            identity:
              name: Ada Lovelace
              email: ada@example.com
        """)
        result = check_config(path, env={})
        assert result.valid
        assert result.errors == []
        assert result.step_count > 20

    def test_reports_unknown_keys_and_missing_identity(self, tmp_path: Path):
        path = _write(tmp_path, "colour: blue\n")
        result = check_config(path, env={})
        assert result.valid
        assert any("colour" in w for w in result.warnings)
        assert any("Identity incomplete" in w for w in result.warnings)

    def test_unknown_skip_id_is_an_error(self, tmp_path: Path):
        path = _write(tmp_path, "skip: [no-such-step]\n")
        result = check_config(path, env={})
        assert not result.valid
        assert "no-such-step" in result.errors[0]

    def test_missing_explicit_file(self, tmp_path: Path):
        result = check_config(tmp_path / "missing.yml", env={})
        assert not result.valid
        assert result.to_dict()["valid"] is False
