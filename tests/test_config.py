import pytest

from kubemend.core.config import RepairConfig
from kubemend.core.errors import ConfigError


def test_defaults_without_environment():
    config = RepairConfig.from_env({})

    assert config.namespace == "default"
    assert config.driver == "secret"
    assert config.kubeconfig is None
    assert config.dry_run is False
    assert config.color is True
    assert config.debug is False


def test_helm_environment_is_honoured():
    config = RepairConfig.from_env({
        "HELM_NAMESPACE": "apps",
        "HELM_DRIVER": "configmaps",
        "KUBECONFIG": "/tmp/kube.yaml",
        "HELM_KUBECONTEXT": "staging",
        "HELM_DEBUG": "true",
        "NO_COLOR": "1",
    })

    assert config.namespace == "apps"
    assert config.driver == "configmap"
    assert config.kubeconfig == "/tmp/kube.yaml"
    assert config.kube_context == "staging"
    assert config.debug is True
    assert config.color is False


def test_explicit_overrides_win_and_none_is_ignored():
    config = RepairConfig.from_env({"HELM_NAMESPACE": "apps"}, namespace="ops", kubeconfig=None, dry_run=True)

    assert config.namespace == "ops"
    assert config.kubeconfig is None
    assert config.dry_run is True


@pytest.mark.parametrize("overrides", [
    {"driver": "etcd"},
    {"request_timeout": 0},
    {"request_timeout": -1.5},
    {"colour": False},
])
def test_invalid_settings_raise(overrides):
    with pytest.raises(ConfigError):
        RepairConfig.from_env({}, **overrides)


def test_empty_namespace_is_rejected():
    config = RepairConfig(namespace="")
    with pytest.raises(ConfigError):
        config.validate()
