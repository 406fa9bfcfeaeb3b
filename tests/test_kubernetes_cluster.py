from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from kubernetes import config as k8s_config
from kubernetes.client.rest import ApiException
from kubernetes.dynamic.exceptions import ResourceNotFoundError
from urllib3.exceptions import MaxRetryError, ReadTimeoutError

from conftest import configmap
from kubemend.cluster import kubernetes as kube_module
from kubemend.cluster.kubernetes import KubernetesCluster, load_api_client
from kubemend.core.errors import BuildError, ClientError, ConfigError, ObjectNotFoundError, ReconcileError
from kubemend.core.models import ObjectDescriptor, ObjectRef
from kubemend.core.reconciler import Reconciler
from kubemend.patching.strategic import PatchGenerator


@pytest.fixture
def dynamic():
    dyn = MagicMock()
    dyn.resources.get.return_value = SimpleNamespace(kind="ConfigMap", namespaced=True)
    return dyn


@pytest.fixture
def cluster(dynamic):
    return KubernetesCluster(MagicMock(), dynamic=dynamic)


def result(obj):
    return SimpleNamespace(to_dict=lambda: obj)


def test_unknown_kind_is_build_error(cluster, dynamic):
    dynamic.resources.get.side_effect = ResourceNotFoundError("no matches")

    with pytest.raises(BuildError, match="Kind=Widget"):
        cluster.client_for("example.com/v1", "Widget")


def test_is_namespaced_uses_discovery(cluster, dynamic):
    assert cluster.is_namespaced("v1", "ConfigMap") is True
    dynamic.resources.get.assert_called_with(api_version="v1", kind="ConfigMap")


def test_get_returns_plain_dict(cluster, dynamic):
    dynamic.get.return_value = result(configmap(data={"k": "v"}))

    obj = cluster.client_for("v1", "ConfigMap").get("default", "a")

    assert obj["data"] == {"k": "v"}
    _, kwargs = dynamic.get.call_args
    assert kwargs == {"name": "a", "namespace": "default"}


def test_get_404_is_object_not_found(cluster, dynamic):
    dynamic.get.side_effect = ApiException(status=404, reason="Not Found")

    with pytest.raises(ObjectNotFoundError):
        cluster.client_for("v1", "ConfigMap").get("default", "a")


def test_create_conflict_is_client_error(cluster, dynamic):
    dynamic.create.side_effect = ApiException(status=409, reason="Conflict")

    with pytest.raises(ClientError) as exc_info:
        cluster.client_for("v1", "ConfigMap").create("default", configmap())
    assert exc_info.value.status == 409


def test_dry_run_patch_is_server_side(cluster, dynamic):
    dynamic.patch.return_value = result(configmap(data={"k": "v2"}))

    cluster.client_for("v1", "ConfigMap").patch("default", "a", {"data": {"k": "v2"}}, dry_run=True)

    _, kwargs = dynamic.patch.call_args
    assert kwargs["dry_run"] == "All"
    assert kwargs["content_type"] == "application/strategic-merge-patch+json"
    assert kwargs["body"] == {"data": {"k": "v2"}}


def test_merge_patch_content_type(cluster, dynamic):
    dynamic.patch.return_value = result({})

    cluster.client_for("example.com/v1", "Widget").patch("default", "w", {}, patch_type="merge")

    assert dynamic.patch.call_args[1]["content_type"] == "application/merge-patch+json"


def test_unknown_patch_type_is_rejected(cluster, dynamic):
    with pytest.raises(ClientError):
        cluster.client_for("v1", "ConfigMap").patch("default", "a", {}, patch_type="json")
    dynamic.patch.assert_not_called()


def test_request_timeout_is_forwarded(dynamic):
    cluster = KubernetesCluster(MagicMock(), request_timeout=5.0, dynamic=dynamic)
    dynamic.create.return_value = result(configmap())

    cluster.client_for("v1", "ConfigMap").create("default", configmap())

    _, kwargs = dynamic.create.call_args
    assert kwargs["_request_timeout"] == 5.0
    assert "dry_run" not in kwargs


def test_cluster_scoped_calls_pass_no_namespace(cluster, dynamic):
    dynamic.get.return_value = result({"kind": "Namespace"})

    cluster.client_for("v1", "Namespace").get("", "team-a")

    assert dynamic.get.call_args[1]["namespace"] is None


def test_transport_failure_is_client_error(cluster, dynamic):
    dynamic.create.side_effect = MaxRetryError(None, "/api/v1/namespaces/default/configmaps", reason="refused")

    with pytest.raises(ClientError, match='create ConfigMap "a"'):
        cluster.client_for("v1", "ConfigMap").create("default", configmap())


def test_request_timeout_names_the_object(cluster, dynamic, catalog):
    dynamic.get.side_effect = ReadTimeoutError(None, "/api/v1/namespaces/default/configmaps/a", "read timed out")
    desired = configmap(data={"k": "v"})
    target = ObjectDescriptor(ref=ObjectRef.from_object(desired), desired=desired,
                              client=cluster.client_for("v1", "ConfigMap"))

    with pytest.raises(ReconcileError) as exc_info:
        Reconciler(PatchGenerator(catalog)).reconcile(target)
    assert exc_info.value.ref.name == "a"
    assert isinstance(exc_info.value.cause, ClientError)


def test_discovery_transport_failure_is_build_error(cluster, dynamic):
    dynamic.resources.get.side_effect = MaxRetryError(None, "/apis", reason="refused")

    with pytest.raises(BuildError, match="Kind=ConfigMap"):
        cluster.client_for("v1", "ConfigMap")


def test_unreachable_api_server_at_startup_is_client_error(monkeypatch):
    def unreachable(api_client):
        raise MaxRetryError(None, "/version", reason="refused")
    monkeypatch.setattr(kube_module, "DynamicClient", unreachable)

    with pytest.raises(ClientError, match="unable to discover cluster API resources"):
        KubernetesCluster(MagicMock())


def test_missing_kubeconfig_is_config_error(monkeypatch):
    def missing(*args, **kwargs):
        raise k8s_config.ConfigException("Invalid kube-config file. No configuration found.")
    monkeypatch.setattr(k8s_config, "load_incluster_config", missing)
    monkeypatch.setattr(k8s_config, "load_kube_config", missing)

    with pytest.raises(ConfigError, match="unable to load kubernetes configuration"):
        load_api_client()
