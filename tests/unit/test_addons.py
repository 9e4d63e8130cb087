"""Unit tests for provision addons module."""

import pytest

from kindup.provision.addons import (
    ARGS_PATH,
    AVAILABLE_ADDONS,
    ingress_nginx,
    metrics_server,
    resolve_addons,
)


class TestAddons:
    """Tests for add-on definitions."""

    def test_available(self):
        assert AVAILABLE_ADDONS == ("metrics-server", "ingress-nginx")

    def test_metrics_server_patch(self):
        """Test the patch appends kind-specific kubelet flags."""
        addon = metrics_server()

        assert addon.namespace == "kube-system"
        assert addon.patch() == [
            {"op": "add", "path": ARGS_PATH, "value": "--kubelet-insecure-tls"},
            {
                "op": "add",
                "path": ARGS_PATH,
                "value": "--kubelet-preferred-address-types=InternalIP,ExternalIP,Hostname",
            },
        ]
        assert "v0.8.0" in addon.manifest_url

    def test_ingress_nginx(self):
        addon = ingress_nginx()

        assert addon.deployment == "ingress-nginx-controller"
        assert addon.patch() == []
        assert addon.manifest_url.endswith("/deploy/static/provider/cloud/deploy.yaml")

    def test_resolve_preserves_order_and_dedupes(self):
        addons = resolve_addons(["ingress-nginx", "metrics-server", "ingress-nginx"])
        assert [a.name for a in addons] == ["ingress-nginx", "metrics-server"]

    def test_resolve_unknown(self):
        with pytest.raises(ValueError, match="Unknown add-on: istio"):
            resolve_addons(["istio"])
