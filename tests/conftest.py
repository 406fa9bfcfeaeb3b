import io
import os
import sys

import pytest
from ruamel.yaml import YAML

# Ensure the 'src' directory is in the python path so we can import kubemend
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../src')))

from kubemend.cluster.base import ClusterManifestBuilder
from kubemend.cluster.memory import MemoryCluster, MemoryObjectClient
from kubemend.core.engine import RepairAction
from kubemend.core.models import ReleaseRecord
from kubemend.patching.catalog import MergeStrategyCatalog
from kubemend.storage.base import MemoryReleaseStore


def configmap(name="a", data=None, namespace="default", **extra):
    obj = {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": {"name": name, "namespace": namespace},
        "data": dict(data or {}),
    }
    obj.update(extra)
    return obj


def deployment(name="web", containers=None, replicas=1, namespace="default"):
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {"name": name, "namespace": namespace},
        "spec": {
            "replicas": replicas,
            "selector": {"matchLabels": {"app": name}},
            "template": {
                "metadata": {"labels": {"app": name}},
                "spec": {"containers": containers or [{"name": name, "image": "nginx:1.25"}]},
            },
        },
    }


def to_manifest(docs):
    """Renders objects the way a chart would: '---' separated, with source comments."""
    yaml = YAML(typ="safe", pure=True)
    yaml.default_flow_style = False
    parts = []
    for doc in docs:
        stream = io.StringIO()
        yaml.dump(doc, stream)
        parts.append(f"---\n# Source: chart/templates/{doc['kind'].lower()}.yaml\n{stream.getvalue()}")
    return "".join(parts)


class FlakyObjectClient(MemoryObjectClient):
    """Memory client that raises a pre-arranged error for (verb, name)."""

    def _maybe_fail(self, verb, name):
        error = self.cluster.failures.get((verb, name))
        if error is not None:
            raise error

    def get(self, namespace, name):
        self._maybe_fail("get", name)
        return super().get(namespace, name)

    def create(self, namespace, obj, dry_run=False):
        self._maybe_fail("create", obj["metadata"]["name"])
        return super().create(namespace, obj, dry_run=dry_run)

    def patch(self, namespace, name, patch, dry_run=False, patch_type="strategic"):
        self._maybe_fail("patch", name)
        return super().patch(namespace, name, patch, dry_run=dry_run, patch_type=patch_type)


class FlakyCluster(MemoryCluster):

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.failures = {}

    def client_for(self, api_version, kind):
        return FlakyObjectClient(self, api_version, kind)


@pytest.fixture
def catalog():
    return MergeStrategyCatalog.load()


@pytest.fixture
def cluster(catalog):
    return FlakyCluster(catalog=catalog)


@pytest.fixture
def store():
    return MemoryReleaseStore()


@pytest.fixture
def install(store):
    """Records a release whose manifest holds `docs`."""
    def _install(docs, name="web", namespace="default", revision=1):
        record = ReleaseRecord(name=name, manifest=to_manifest(docs),
                               namespace=namespace, revision=revision)
        return store.create(record)
    return _install


@pytest.fixture
def diff_out():
    return io.StringIO()


@pytest.fixture
def make_action(store, cluster, catalog, diff_out):
    def _make(dry_run=False, continue_on_error=False):
        return RepairAction(
            store,
            ClusterManifestBuilder(cluster),
            catalog=catalog,
            dry_run=dry_run,
            continue_on_error=continue_on_error,
            out=diff_out,
        )
    return _make
