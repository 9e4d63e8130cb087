"""Optional cluster add-ons.

Each add-on is a released manifest applied with kubectl, optionally followed
by a JSON patch of its deployment's container args, a wait for the
deployment to become available and an API readiness query.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

METRICS_SERVER_VERSION = "v0.8.0"
INGRESS_NGINX_VERSION = "controller-v1.8.2"

METRICS_SERVER_URL = (
    "https://github.com/kubernetes-sigs/metrics-server/releases/download/{version}/components.yaml"
)
INGRESS_NGINX_URL = (
    "https://raw.githubusercontent.com/kubernetes/ingress-nginx/{version}"
    "/deploy/static/provider/cloud/deploy.yaml"
)

ARGS_PATH = "/spec/template/spec/containers/0/args/-"


@dataclass(frozen=True)
class Addon:
    """A manifest-based cluster add-on."""

    name: str
    manifest_url: str
    namespace: str
    deployment: str
    extra_args: tuple[str, ...] = ()
    wait_timeout: int = 0
    serving_check: tuple[str, ...] = ()
    serving_timeout: float = 30.0

    def patch(self) -> list[dict[str, Any]]:
        """JSON patch appending extra_args to the first container."""
        return [{"op": "add", "path": ARGS_PATH, "value": arg} for arg in self.extra_args]


def metrics_server(version: str = METRICS_SERVER_VERSION) -> Addon:
    """metrics-server patched for kind's self-signed kubelet certificates."""
    return Addon(
        name="metrics-server",
        manifest_url=METRICS_SERVER_URL.format(version=version),
        namespace="kube-system",
        deployment="metrics-server",
        extra_args=(
            "--kubelet-insecure-tls",
            "--kubelet-preferred-address-types=InternalIP,ExternalIP,Hostname",
        ),
        wait_timeout=60,
        serving_check=("top", "nodes"),
        serving_timeout=30.0,
    )


def ingress_nginx(version: str = INGRESS_NGINX_VERSION) -> Addon:
    return Addon(
        name="ingress-nginx",
        manifest_url=INGRESS_NGINX_URL.format(version=version),
        namespace="ingress-nginx",
        deployment="ingress-nginx-controller",
    )


ADDON_FACTORIES: dict[str, Callable[[], Addon]] = {
    "metrics-server": metrics_server,
    "ingress-nginx": ingress_nginx,
}

AVAILABLE_ADDONS = tuple(ADDON_FACTORIES)


def resolve_addons(names: Iterable[str]) -> list[Addon]:
    """Build add-ons by name, preserving order and dropping duplicates.

    Raises:
        ValueError: For an unknown add-on name.
    """
    addons: list[Addon] = []
    seen: set[str] = set()
    for name in names:
        if name not in ADDON_FACTORIES:
            raise ValueError(
                f"Unknown add-on: {name}. Available: {', '.join(AVAILABLE_ADDONS)}"
            )
        if name in seen:
            continue
        seen.add(name)
        addons.append(ADDON_FACTORIES[name]())
    return addons
