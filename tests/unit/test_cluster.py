"""Unit tests for provision cluster module."""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest
import yaml

from kindup.errors import missing_command
from kindup.provision import CommandExecutor, CommandResult, KindCluster, render_cluster_config
from kindup.provision.addons import ingress_nginx, metrics_server
from kindup.provision.cluster import DEFAULT_CLUSTER_NAME


def nodes_json(*ready: bool) -> str:
    items = [
        {
            "metadata": {"name": f"node-{i}"},
            "status": {
                "conditions": [
                    {"type": "MemoryPressure", "status": "False"},
                    {"type": "Ready", "status": "True" if is_ready else "False"},
                ]
            },
        }
        for i, is_ready in enumerate(ready)
    ]
    return json.dumps({"items": items})


@pytest.fixture
def executor():
    return MagicMock(spec=CommandExecutor)


@pytest.fixture
def cluster(executor, tmp_path):
    return KindCluster("demo", executor=executor, config_path=tmp_path / "kind-config.yaml")


class TestRenderClusterConfig:
    """Tests for the kind cluster descriptor."""

    def test_two_nodes(self):
        """Test the default layout is one control-plane and one worker."""
        config = render_cluster_config()

        assert config["kind"] == "Cluster"
        assert config["apiVersion"] == "kind.x-k8s.io/v1alpha4"
        assert config["nodes"] == [{"role": "control-plane"}, {"role": "worker"}]

    def test_write_config(self, cluster):
        """Test the descriptor is written as YAML."""
        path = cluster.write_config()

        loaded = yaml.safe_load(path.read_text())
        assert [n["role"] for n in loaded["nodes"]] == ["control-plane", "worker"]


class TestKindCluster:
    """Tests for KindCluster."""

    def test_defaults(self):
        cluster = KindCluster(executor=MagicMock())
        assert cluster.name == DEFAULT_CLUSTER_NAME == "codespace-kind"
        assert cluster.context == "kind-codespace-kind"

    def test_exists_exact_match(self, cluster, executor):
        """Test only an exact name match counts."""
        executor.run.return_value = CommandResult(
            ["kind", "get", "clusters"], 0, stdout="demo-2\ncodespace-kind\n"
        )
        assert cluster.exists() is False

        executor.run.return_value = CommandResult(
            ["kind", "get", "clusters"], 0, stdout="codespace-kind\ndemo\n"
        )
        assert cluster.exists() is True

    def test_exists_without_kind(self, cluster, executor):
        """Test a missing kind binary means no cluster."""
        executor.run.side_effect = missing_command("kind")
        assert cluster.exists() is False

    def test_create(self, cluster, executor):
        """Test creation uses the rendered config and prints cluster info."""
        executor.check.side_effect = [
            CommandResult(["kind"], 0, stdout="Creating cluster \"demo\" ..."),
            CommandResult(["kubectl"], 0, stdout="Kubernetes control plane is running"),
        ]

        result = cluster.create()

        create_args = executor.check.call_args_list[0].args[0]
        assert create_args == [
            "kind",
            "create",
            "cluster",
            "--name",
            "demo",
            "--config",
            str(cluster.config_path),
        ]
        info_args = executor.check.call_args_list[1].args[0]
        assert info_args == ["kubectl", "--context", "kind-demo", "cluster-info"]
        assert result.ok is True
        assert "control plane is running" in result.stdout
        assert cluster.config_path.exists()

    def test_nodes_ready(self, cluster, executor):
        """Test all nodes must report Ready."""
        executor.run.return_value = CommandResult(["kubectl"], 0, stdout=nodes_json(True, True))
        assert cluster.nodes_ready() is True

        executor.run.return_value = CommandResult(["kubectl"], 0, stdout=nodes_json(True, False))
        assert cluster.nodes_ready() is False

    def test_nodes_ready_no_nodes(self, cluster, executor):
        executor.run.return_value = CommandResult(["kubectl"], 0, stdout=nodes_json())
        assert cluster.nodes_ready() is False

    def test_nodes_ready_api_down(self, cluster, executor):
        """Test an unreachable API server is not ready."""
        executor.run.return_value = CommandResult(["kubectl"], 1, stderr="connection refused")
        assert cluster.nodes_ready() is False

        executor.run.return_value = CommandResult(["kubectl"], 0, stdout="not json")
        assert cluster.nodes_ready() is False

    def test_node_summary(self, cluster, executor):
        executor.run.return_value = CommandResult(
            ["kubectl"], 0, stdout="demo-control-plane Ready\ndemo-worker Ready\n\n"
        )
        assert cluster.node_summary() == ["demo-control-plane Ready", "demo-worker Ready"]


class TestAddons:
    """Tests for add-on install and detection."""

    def test_addon_installed_requires_patch(self, cluster, executor):
        """Test metrics-server counts as installed only once patched."""
        executor.succeeds.return_value = True
        executor.run.return_value = CommandResult(
            ["kubectl"], 0, stdout='["--cert-dir=/tmp","--secure-port=10250"]'
        )
        assert cluster.addon_installed(metrics_server()) is False

        executor.run.return_value = CommandResult(
            ["kubectl"],
            0,
            stdout=json.dumps(
                [
                    "--cert-dir=/tmp",
                    "--kubelet-insecure-tls",
                    "--kubelet-preferred-address-types=InternalIP,ExternalIP,Hostname",
                ]
            ),
        )
        assert cluster.addon_installed(metrics_server()) is True

    def test_addon_not_deployed(self, cluster, executor):
        executor.succeeds.return_value = False
        assert cluster.addon_installed(ingress_nginx()) is False

    def test_install_metrics_server(self, cluster, executor):
        """Test apply, patch and wait run in order."""
        executor.check.return_value = CommandResult(["kubectl"], 0)
        addon = metrics_server()

        cluster.install_addon(addon)

        calls = [c.args[0] for c in executor.check.call_args_list]
        assert calls[0][-3:] == ["apply", "-f", addon.manifest_url]
        assert "patch" in calls[1]
        assert json.loads(calls[1][-1]) == addon.patch()
        assert "--for=condition=available" in calls[2]
        assert "--timeout=60s" in calls[2]

    def test_install_ingress_nginx(self, cluster, executor):
        """Test an add-on without args is only applied."""
        executor.check.return_value = CommandResult(["kubectl"], 0)

        cluster.install_addon(ingress_nginx())

        assert executor.check.call_count == 1

    def test_addon_serving(self, cluster, executor):
        executor.succeeds.return_value = True

        assert cluster.addon_serving(metrics_server()) is True
        args = executor.succeeds.call_args.args[0]
        assert args == ["kubectl", "--context", "kind-demo", "top", "nodes"]
