#!/usr/bin/env python3
"""
KUBEMEND KUBERNETES CLUSTER
---------------------------
Live-cluster adapter built on the official client's DynamicClient, so any
discoverable kind (including CRDs) can be fetched, re-created and patched.

    404            -> ObjectNotFoundError
    other failures -> ClientError (with the HTTP status when known)
    unknown kind   -> BuildError (raised while the manifest is built)

Author: KubeMend Team
Date: 2026-01-16
"""

import logging
from typing import Any, Dict, Optional

from kubernetes import client as k8s_client
from kubernetes import config as k8s_config
from kubernetes.client.rest import ApiException
from kubernetes.dynamic import DynamicClient
from kubernetes.dynamic.exceptions import DynamicApiError, ResourceNotFoundError
from urllib3.exceptions import HTTPError

from kubemend.cluster.base import ObjectClient
from kubemend.core.errors import BuildError, ClientError, ConfigError, ObjectNotFoundError
from kubemend.patching.strategic import JSON_MERGE_PATCH

logger = logging.getLogger("kubemend.cluster")

PATCH_CONTENT_TYPES = {
    "strategic": "application/strategic-merge-patch+json",
    JSON_MERGE_PATCH: "application/merge-patch+json",
}

DRY_RUN_ALL = "All"


def load_api_client(kubeconfig: Optional[str] = None, context: Optional[str] = None) -> k8s_client.ApiClient:
    """
    Explicit kubeconfig wins; otherwise try in-cluster credentials and
    fall back to the default kubeconfig.
    """
    try:
        if kubeconfig or context:
            k8s_config.load_kube_config(config_file=kubeconfig, context=context)
        else:
            try:
                k8s_config.load_incluster_config()
            except k8s_config.ConfigException:
                k8s_config.load_kube_config()
    except (k8s_config.ConfigException, OSError, HTTPError) as e:
        raise ConfigError(f"unable to load kubernetes configuration: {e}") from e
    return k8s_client.ApiClient()


def _status_of(err: Exception) -> Optional[int]:
    return getattr(err, "status", None)


class KubernetesCluster:

    def __init__(self, api_client: Any, request_timeout: Optional[float] = None,
                 dynamic: Optional[Any] = None):
        self.api_client = api_client
        self.request_timeout = request_timeout
        self.dynamic = dynamic or self._discover(api_client)

    @staticmethod
    def _discover(api_client: Any) -> DynamicClient:
        # DynamicClient reads the API discovery documents on construction
        try:
            return DynamicClient(api_client)
        except (DynamicApiError, ApiException, HTTPError) as e:
            raise ClientError(f"unable to discover cluster API resources: {e}", status=_status_of(e)) from e

    @classmethod
    def from_config(cls, kubeconfig: Optional[str] = None, context: Optional[str] = None,
                    request_timeout: Optional[float] = None) -> "KubernetesCluster":
        return cls(load_api_client(kubeconfig, context), request_timeout=request_timeout)

    def _resource(self, api_version: str, kind: str) -> Any:
        try:
            return self.dynamic.resources.get(api_version=api_version, kind=kind)
        except ResourceNotFoundError as e:
            raise BuildError(
                f'unable to recognize "{api_version}, Kind={kind}": no matches for kind'
            ) from e
        except (DynamicApiError, ApiException, HTTPError) as e:
            raise BuildError(
                f'unable to look up "{api_version}, Kind={kind}": {e}'
            ) from e

    def is_namespaced(self, api_version: str, kind: str) -> bool:
        return bool(self._resource(api_version, kind).namespaced)

    def client_for(self, api_version: str, kind: str) -> "KubernetesObjectClient":
        return KubernetesObjectClient(self, self._resource(api_version, kind))


class KubernetesObjectClient(ObjectClient):

    def __init__(self, cluster: KubernetesCluster, resource: Any):
        self.cluster = cluster
        self.resource = resource

    def _options(self, namespace: str, dry_run: bool = False) -> Dict[str, Any]:
        opts: Dict[str, Any] = {"namespace": namespace or None}
        if dry_run:
            opts["dry_run"] = DRY_RUN_ALL
        if self.cluster.request_timeout:
            opts["_request_timeout"] = self.cluster.request_timeout
        return opts

    def _call(self, verb: str, label: str, fn, **kwargs) -> Dict[str, Any]:
        try:
            result = fn(self.resource, **kwargs)
        except (DynamicApiError, ApiException) as e:
            status = _status_of(e)
            if status == 404:
                raise ObjectNotFoundError(f'{self.resource.kind} "{label}" not found') from e
            logger.error(f"{verb} {self.resource.kind} {label} failed with status {status}")
            raise ClientError(f"{verb} {self.resource.kind} \"{label}\": {e}", status=status) from e
        except HTTPError as e:
            logger.error(f"{verb} {self.resource.kind} {label} failed: {e}")
            raise ClientError(f"{verb} {self.resource.kind} \"{label}\": {e}") from e
        return result.to_dict() if hasattr(result, "to_dict") else dict(result)

    def get(self, namespace: str, name: str) -> Dict[str, Any]:
        return self._call("get", name, self.cluster.dynamic.get,
                          name=name, **self._options(namespace))

    def create(self, namespace: str, obj: Dict[str, Any], dry_run: bool = False) -> Dict[str, Any]:
        name = str((obj.get("metadata") or {}).get("name", ""))
        return self._call("create", name, self.cluster.dynamic.create,
                          body=obj, **self._options(namespace, dry_run))

    def patch(self, namespace: str, name: str, patch: Dict[str, Any],
              dry_run: bool = False, patch_type: str = "strategic") -> Dict[str, Any]:
        content_type = PATCH_CONTENT_TYPES.get(patch_type)
        if content_type is None:
            raise ClientError(f"unsupported patch type '{patch_type}'")
        return self._call("patch", name, self.cluster.dynamic.patch,
                          body=patch, name=name, content_type=content_type,
                          **self._options(namespace, dry_run))
