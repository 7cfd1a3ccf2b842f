"""
tests/test_workspace.py — Workspace config, local state and layout tests.
"""

import json
import os
import sys
import shutil
import tempfile
import yaml
import pytest
from pathlib import Path

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from mosaic.errors import (
    ConfigError, DuplicateProjectNameError, GraphParseError, WorkspaceNotFoundError,
)
from mosaic.graph.source import ArchiveSource
from mosaic.workspace.config import (
    DEFAULT_SYSTEMS, EnvironmentConfig, LocalState, ProjectRegistration,
    UpdateStrategy, WorkspaceConfig, load_config, load_local,
    parse_config_dict, save_config, save_local,
)
from mosaic.workspace.layout import Workspace, find_root, lock_path


CONFIG = {
    "default_env": "dev",
    "systems": ["x86_64-linux"],
    "environments": [
        {"name": "dev"},
        {"name": "prod", "strategy": {"latest-tag": "release-*"}},
    ],
    "projects": [
        {"name": "lib", "url": "github:org/lib", "path": "./lib"},
        {"name": "tools", "url": "github:org/tools", "path": "./tools",
         "flatten": True, "exclude": ["checks"], "strategy": {"prod": "freeze"}},
    ],
}


# ─── Config ──────────────────────────────────────────────────

class TestParseConfig:
    def test_full(self):
        cfg = parse_config_dict(CONFIG)
        assert cfg.default_env == "dev"
        assert cfg.environment_names() == ["dev", "prod"]
        assert cfg.env("prod").strategy == UpdateStrategy("latest-tag", "release-*")
        assert cfg.systems == ["x86_64-linux"]
        assert cfg.project_names() == ["lib", "tools"]

        tools = cfg.project("tools")
        assert tools.is_flattened()
        assert tools.excludes("checks")
        assert not tools.excludes("packages")
        assert tools.strategy_for(cfg.env("prod")).kind == "freeze"
        assert tools.strategy_for(cfg.env("dev")).kind == "latest"

    def test_defaults(self):
        cfg = parse_config_dict(None)
        assert cfg.environment_names() == ["dev"]
        assert cfg.default_env == "dev"
        assert cfg.projects == []
        assert cfg.systems == DEFAULT_SYSTEMS
        assert cfg.flatten is False

    def test_string_environments(self):
        cfg = parse_config_dict({"environments": ["staging", "prod"]})
        assert cfg.default_env == "staging"

    def test_unknown_keys_ignored(self):
        cfg = parse_config_dict({"color": "blue", "projects": [
            {"name": "lib", "url": "path:./lib", "owner": "me"},
        ]})
        assert cfg.project_names() == ["lib"]

    def test_source(self):
        cfg = parse_config_dict(CONFIG)
        assert cfg.project("lib").source == ArchiveSource(host="github", owner="org", repo="lib")

    def test_flatten_override(self):
        reg = ProjectRegistration(name="x", url="path:./x")
        assert reg.is_flattened(True)
        assert not ProjectRegistration(name="x", url="path:./x", flatten=False).is_flattened(True)

    def test_exclude_forms(self):
        cfg = parse_config_dict({"projects": [
            {"name": "a", "url": "path:./a", "exclude": True},
            {"name": "b", "url": "path:./b", "exclude": "apps"},
        ]})
        assert cfg.project("a").excludes("overlays")
        assert cfg.project("b").excludes("apps")
        assert not cfg.project("b").excludes("packages")

    def test_duplicate_project(self):
        data = {"projects": [
            {"name": "lib", "url": "github:org/lib"},
            {"name": "lib", "url": "github:org/lib2"},
        ]}
        with pytest.raises(DuplicateProjectNameError, match="Duplicate project name: 'lib'"):
            parse_config_dict(data)

    def test_duplicate_environment(self):
        with pytest.raises(ConfigError, match="Duplicate environment name"):
            parse_config_dict({"environments": ["dev", "dev"]})

    def test_unknown_default_env(self):
        with pytest.raises(ConfigError, match="Environment does not exist: 'qa'"):
            parse_config_dict({"default_env": "qa"})

    def test_reserved_name(self):
        with pytest.raises(ConfigError, match="'self' is reserved"):
            parse_config_dict({"projects": [{"name": "self", "url": "path:./x"}]})

    def test_bad_url(self):
        with pytest.raises(ConfigError, match=r"projects\[0\].url"):
            parse_config_dict({"projects": [{"name": "x", "url": "github:org"}]})

    def test_missing_url(self):
        with pytest.raises(ConfigError, match="url is required"):
            parse_config_dict({"projects": [{"name": "x"}]})

    def test_bad_exclude(self):
        with pytest.raises(ConfigError, match="exclude must be"):
            parse_config_dict({"projects": [{"name": "x", "url": "path:x", "exclude": 3}]})

    def test_bad_flatten(self):
        with pytest.raises(ConfigError, match="flatten must be a boolean"):
            parse_config_dict({"flatten": "yes"})

    def test_unknown_lookups(self):
        cfg = parse_config_dict(CONFIG)
        with pytest.raises(ConfigError, match="Could not find project 'ghost'"):
            cfg.project("ghost")
        with pytest.raises(ConfigError, match="Available environments"):
            cfg.env("qa")


class TestUpdateStrategy:
    def test_parse(self):
        assert UpdateStrategy.parse(None) == UpdateStrategy()
        assert UpdateStrategy.parse("freeze").kind == "freeze"
        assert UpdateStrategy.parse({"branch": "main"}).argument == "main"

    def test_invalid(self):
        with pytest.raises(ConfigError, match="Unknown strategy 'newest'"):
            UpdateStrategy.parse("newest")
        with pytest.raises(ConfigError, match="requires a branch name"):
            UpdateStrategy.parse("branch")
        with pytest.raises(ConfigError, match="Invalid strategy"):
            UpdateStrategy.parse({"latest": None, "freeze": None})

    def test_to_value(self):
        assert UpdateStrategy("latest").to_value() == "latest"
        assert UpdateStrategy("branch", "main").to_value() == {"branch": "main"}


class TestEditConfig:
    def test_add_remove(self):
        cfg = WorkspaceConfig()
        cfg.add_project(ProjectRegistration(name="lib", url="github:org/lib"))
        with pytest.raises(DuplicateProjectNameError):
            cfg.add_project(ProjectRegistration(name="lib", url="github:org/lib"))
        with pytest.raises(ConfigError, match="reserved"):
            cfg.add_project(ProjectRegistration(name="root", url="github:org/root"))
        assert cfg.remove_project("lib").name == "lib"
        assert cfg.projects == []


class TestLocalState:
    def test_flags(self):
        state = LocalState()
        assert not state.is_editable("lib")
        state.mark_editable("lib")
        state.mark_editable("app")
        assert state.editable_names() == ["app", "lib"]
        state.unmark_editable("lib")
        assert state.editable_names() == ["app"]


# ─── Files ───────────────────────────────────────────────────

class TestFiles:
    def setup_method(self):
        self.tmpdir = Path(tempfile.mkdtemp())

    def teardown_method(self):
        shutil.rmtree(self.tmpdir)

    def test_config_save_load(self):
        path = self.tmpdir / "workspace.yaml"
        save_config(parse_config_dict(CONFIG), path)
        data = yaml.safe_load(path.read_text())
        assert data["projects"][1]["exclude"] == ["checks"]
        assert data["environments"][1]["strategy"] == {"latest-tag": "release-*"}

        cfg = load_config(path)
        assert cfg.project("tools").strategy["prod"].kind == "freeze"
        assert cfg.systems == ["x86_64-linux"]

    def test_config_missing(self):
        with pytest.raises(ConfigError, match="Workspace config not found"):
            load_config(self.tmpdir / "workspace.yaml")

    def test_config_invalid_yaml(self):
        path = self.tmpdir / "workspace.yaml"
        path.write_text("projects: [\n")
        with pytest.raises(ConfigError, match="invalid YAML"):
            load_config(path)

    def test_local_save_load(self):
        path = self.tmpdir / ".mosaic" / "local.json"
        state = LocalState()
        state.mark_editable("lib")
        save_local(state, path)
        assert json.loads(path.read_text()) == {"projects": {"lib": {"editable": True}}}
        assert load_local(path).is_editable("lib")

    def test_local_missing(self):
        assert load_local(self.tmpdir / "local.json").editable_names() == []

    def test_local_invalid(self):
        path = self.tmpdir / "local.json"
        path.write_text("[1]")
        with pytest.raises(ConfigError, match="must be a mapping"):
            load_local(path)


# ─── Layout ──────────────────────────────────────────────────

class TestLayout:
    def setup_method(self):
        self.root = Path(tempfile.mkdtemp()).resolve()
        (self.root / "workspace.yaml").write_text(yaml.dump(CONFIG))
        (self.root / "lib" / "src").mkdir(parents=True)
        (self.root / ".mosaic").mkdir()
        (self.root / ".mosaic" / "dev.lock").write_text(json.dumps({
            "nodes": {
                "root": {"inputs": {"lib": "lib"}},
                "lib": {"locked": {"type": "github", "owner": "org", "repo": "lib",
                                   "rev": "r1", "hash": "sha256:1"}},
            },
        }))

    def teardown_method(self):
        shutil.rmtree(self.root)

    def test_find_root(self):
        assert find_root(self.root / "lib" / "src") == self.root
        assert find_root(self.root) == self.root

    def test_find_root_bounded(self):
        with pytest.raises(WorkspaceNotFoundError, match="searched 2 levels"):
            find_root(self.root / "lib" / "src", max_depth=2)

    def test_find_root_missing(self):
        empty = Path(tempfile.mkdtemp())
        try:
            with pytest.raises(WorkspaceNotFoundError):
                find_root(empty, max_depth=1)
        finally:
            shutil.rmtree(empty)

    def test_at(self):
        ws = Workspace.at(self.root)
        assert ws.lock("dev").locked_source("lib").rev == "r1"
        assert list(ws.lock("prod").nodes) == ["root"]
        assert not ws.local.is_editable("lib")

    def test_at_strict_locks(self):
        ws = Workspace.at(self.root, strict_locks=True)
        assert ws.lock("dev").locked_source("lib").rev == "r1"
        with pytest.raises(GraphParseError, match="prod.lock"):
            ws.lock("prod")

    def test_locks_read_on_first_use(self):
        ws = Workspace.at(self.root)
        assert ws.locks == {}
        dev = ws.lock("dev")
        assert list(ws.locks) == ["dev"]
        assert ws.lock("dev") is dev

    def test_broken_lock_affects_only_its_env(self):
        (self.root / ".mosaic" / "prod.lock").write_text("{not json")
        ws = Workspace.at(self.root)
        assert ws.lock("dev").locked_source("lib").rev == "r1"
        with pytest.raises(GraphParseError, match="prod.lock"):
            ws.lock("prod")

    def test_save_writes_only_read_locks(self):
        ws = Workspace.at(self.root)
        ws.lock("dev")
        ws.save()
        assert not (self.root / ".mosaic" / "prod.lock").exists()

    def test_discover(self):
        ws = Workspace.discover(self.root / "lib" / "src")
        assert ws.root == self.root

    def test_unknown_env(self):
        with pytest.raises(ConfigError):
            Workspace.at(self.root).lock("qa")

    def test_project_dir_and_context(self):
        ws = Workspace.at(self.root)
        assert ws.project_dir("lib") == self.root / "lib"
        assert ws.context(self.root / "lib" / "src") == "lib"
        assert ws.context(self.root) is None

    def test_save(self):
        ws = Workspace.at(self.root)
        ws.local.mark_editable("lib")
        ws.lock("prod")
        ws.save()
        assert lock_path(self.root, "prod").exists()
        assert Workspace.at(self.root).local.is_editable("lib")
        assert Workspace.at(self.root).lock("dev").locked_source("lib").rev == "r1"

    def test_environment_config(self):
        assert EnvironmentConfig("dev").strategy.kind == "latest"
