import pytest

from conftest import configmap, deployment
from kubemend.core.errors import SerializationError
from kubemend.rendering.diff import DiffRenderer


def changed_lines(diff_text):
    return [
        line for line in diff_text.splitlines()
        if line.startswith(("+", "-")) and not line.startswith(("+++", "---"))
    ]


def test_labels_identify_object_and_side():
    before = configmap(data={"k": "v1"})
    after = configmap(data={"k": "v2"})

    text = DiffRenderer().render(before, after)
    lines = text.splitlines()
    assert lines[0] == "--- v1.ConfigMap.default.a (current)"
    assert lines[1] == "+++ v1.ConfigMap.default.a (target)"


def test_group_version_slash_becomes_dot():
    before = deployment(replicas=1)
    after = deployment(replicas=2)

    text = DiffRenderer().render(before, after)
    assert text.splitlines()[0] == "--- apps.v1.Deployment.default.web (current)"
    assert changed_lines(text) == ["-  replicas: 1", "+  replicas: 2"]


def test_only_the_changed_field_shows_up():
    before = configmap(data={"k": "v1"}, extraField="x")
    before["metadata"]["resourceVersion"] = "10"
    after = configmap(data={"k": "v2"}, extraField="x")
    after["metadata"]["resourceVersion"] = "11"

    assert changed_lines(DiffRenderer().render(before, after)) == ["-  k: v1", "+  k: v2"]


def test_identical_snapshots_render_nothing():
    obj = configmap(data={"k": "v"})
    assert DiffRenderer().render(obj, dict(obj)) == ""


def test_key_order_does_not_matter():
    before = {"kind": "ConfigMap", "apiVersion": "v1", "data": {"b": "2", "a": "1"}, "metadata": {"name": "a"}}
    after = {"metadata": {"name": "a"}, "apiVersion": "v1", "data": {"a": "1", "b": "2"}, "kind": "ConfigMap"}

    assert DiffRenderer().render(before, after) == ""


def test_unserializable_snapshot_raises():
    with pytest.raises(SerializationError):
        DiffRenderer().render(configmap(data={"k": object()}), configmap())
