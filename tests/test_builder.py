import pytest

from conftest import configmap, deployment, to_manifest
from kubemend.cluster.base import ClusterManifestBuilder
from kubemend.cluster.memory import MemoryObjectClient
from kubemend.core.errors import BuildError


@pytest.fixture
def builder(cluster):
    return ClusterManifestBuilder(cluster)


def test_documents_keep_manifest_order(builder):
    manifest = to_manifest([configmap("b"), deployment("web"), configmap("a")])

    targets = builder.build(manifest, "default")
    assert [(t.ref.kind, t.name) for t in targets] == [
        ("ConfigMap", "b"), ("Deployment", "web"), ("ConfigMap", "a"),
    ]
    assert all(isinstance(t.client, MemoryObjectClient) for t in targets)
    assert targets[1].client.kind == "Deployment"


def test_release_namespace_fills_missing_namespace(builder):
    manifest = (
        "apiVersion: v1\nkind: ConfigMap\nmetadata:\n  name: plain\n"
        "---\n"
        "apiVersion: v1\nkind: ConfigMap\nmetadata:\n  name: pinned\n  namespace: ops\n"
    )

    plain, pinned = builder.build(manifest, "team-a")
    assert plain.namespace == "team-a"
    assert pinned.namespace == "ops"
    # The desired document itself is passed through untouched
    assert "namespace" not in plain.desired["metadata"]


def test_cluster_scoped_objects_have_no_namespace(builder):
    manifest = "apiVersion: v1\nkind: Namespace\nmetadata:\n  name: team-a\n"

    (ns,) = builder.build(manifest, "default")
    assert ns.namespace == ""
    assert ns.ref.label == "v1.Namespace..team-a"


def test_empty_documents_are_skipped(builder):
    manifest = "---\n# Source: chart/templates/empty.yaml\n---\n" + to_manifest([configmap("a")]) + "---\n"

    assert [t.name for t in builder.build(manifest, "default")] == ["a"]


def test_list_documents_are_flattened(builder):
    manifest = (
        "apiVersion: v1\nkind: List\nitems:\n"
        "- apiVersion: v1\n  kind: ConfigMap\n  metadata:\n    name: one\n"
        "- apiVersion: v1\n  kind: ConfigMap\n  metadata:\n    name: two\n"
    )

    assert [t.name for t in builder.build(manifest, "default")] == ["one", "two"]


@pytest.mark.parametrize("manifest", [
    "apiVersion: v1\nkind: ConfigMap\nmetadata: {}\n",
    "kind: ConfigMap\nmetadata:\n  name: a\n",
    "apiVersion: v1\nmetadata:\n  name: a\n",
    "- just\n- a list\n",
    "apiVersion: v1\nkind: ConfigMap\nmetadata:\n  name: [unclosed\n",
])
def test_malformed_manifests_raise_build_error(builder, manifest):
    with pytest.raises(BuildError):
        builder.build(manifest, "default")


def test_empty_manifest_builds_nothing(builder):
    assert builder.build("", "default") == []


def test_chart_literals_read_as_yaml_1_1(builder):
    """Octal modes, on/yes booleans and bare dates decode the way Helm decodes them."""
    manifest = (
        "apiVersion: v1\nkind: ConfigMap\nmetadata:\n  name: a\n"
        "mode: 0644\nenabled: on\nverbose: yes\nreleased: 2024-03-01\n"
    )

    (target,) = builder.build(manifest, "default")
    assert target.desired["mode"] == 420
    assert target.desired["enabled"] is True
    assert target.desired["verbose"] is True
    assert target.desired["released"] == "2024-03-01"
