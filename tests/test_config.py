"""
Tests for configuration loading, discovery and validation.
"""

import textwrap
from pathlib import Path

import pytest

from svcctl.core.config.loader import ConfigError, find_cluster_file, load_cluster
from svcctl.core.models.path import ObjectPath
from svcctl.core.use_cases.config_check import check_config


class TestLoadCluster:
    def test_nested_cluster_section(self, make_cluster):
        config_path = make_cluster("""\
            objects:
              - path: svc1
                resources:
                  - rid: fs#1
                    type: fs.flag
        """)
        config = load_cluster(config_path)
        assert config.name == "test-cluster"
        assert config.node == "node1"
        assert config.lock_timeout == 2
        assert config.object_paths() == [ObjectPath.parse("svc1")]

    def test_flat_layout(self, tmp_path: Path):
        config_path = tmp_path / "cluster.yml"
        config_path.write_text(textwrap.dedent("""\
            name: flat
            objects:
              - path: ns1/vol/data
        """))
        config = load_cluster(config_path)
        assert config.name == "flat"
        assert config.var_dir == "/var/lib/svcctl"
        assert config.get_object(ObjectPath.parse("ns1/vol/data")) is not None

    def test_empty_file(self, tmp_path: Path):
        config_path = tmp_path / "cluster.yml"
        config_path.write_text("")
        assert load_cluster(config_path).objects == []

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_cluster(tmp_path / "nope.yml")

    def test_invalid_yaml(self, tmp_path: Path):
        config_path = tmp_path / "cluster.yml"
        config_path.write_text("objects: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_cluster(config_path)

    def test_not_a_mapping(self, tmp_path: Path):
        config_path = tmp_path / "cluster.yml"
        config_path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_cluster(config_path)

    @pytest.mark.parametrize(
        "body, message",
        [
            ("objects:\n  - path: a/b/c/d\n", "invalid object path"),
            ("objects:\n  - path: bad/thing\n", "unknown kind"),
            ("objects:\n  - path: svc1\n  - path: root/svc/svc1\n", "duplicate object"),
            (
                "objects:\n  - path: svc1\n    resources:\n      - {rid: app, type: app.forking}\n",
                "invalid rid",
            ),
            (
                "objects:\n  - path: svc1\n    resources:\n"
                "      - {rid: app#1, type: app.forking}\n      - {rid: app#1, type: app.forking}\n",
                "duplicate rid",
            ),
        ],
    )
    def test_invalid_models(self, tmp_path: Path, body: str, message: str):
        config_path = tmp_path / "cluster.yml"
        config_path.write_text(body)
        with pytest.raises(ConfigError, match=message):
            load_cluster(config_path)


class TestFindClusterFile:
    def test_found_in_parent(self, tmp_path: Path):
        (tmp_path / "cluster.yml").write_text("objects: []\n")
        sub = tmp_path / "a" / "b"
        sub.mkdir(parents=True)
        assert find_cluster_file(sub) == (tmp_path / "cluster.yml").resolve()

    def test_not_found(self, tmp_path: Path):
        assert find_cluster_file(tmp_path) is None

    def test_load_from_cwd(self, tmp_path: Path, monkeypatch):
        (tmp_path / "cluster.yml").write_text("name: here\n")
        monkeypatch.chdir(tmp_path)
        assert load_cluster().name == "here"

    def test_load_nothing_found(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with pytest.raises(ConfigError, match="No cluster.yml"):
            load_cluster()


class TestCheckConfig:
    def test_valid(self, make_cluster):
        config_path = make_cluster("""\
            objects:
              - path: svc1
                resources:
                  - rid: fs#1
                    type: fs.flag
                  - rid: app#1
                    type: app.forking
                    params: {start: "true", check: "true"}
        """)
        result = check_config(config_path)
        assert result.valid
        assert result.resource_count == 2
        assert result.to_dict()["object_count"] == 1

    def test_driver_errors_reported(self, make_cluster):
        config_path = make_cluster("""\
            objects:
              - path: svc1
                resources:
                  - rid: fs#1
                    type: fs.zfs
                  - rid: app#1
                    type: app.forking
                    params: {nope: 1}
        """)
        result = check_config(config_path)
        assert not result.valid
        assert len(result.errors) == 2

    def test_warnings(self, make_cluster):
        config_path = make_cluster("""\
            objects:
              - path: svc1
              - path: cfg/settings
                resources:
                  - rid: fs#1
                    type: fs.flag
        """)
        result = check_config(config_path)
        assert result.valid
        assert len(result.warnings) == 2

    def test_missing(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = check_config()
        assert not result.valid
        assert result.errors == ["No cluster.yml found."]
