#!/usr/bin/env python3
"""
KUBEMEND CONFIG
---------------
Runtime settings for one invocation. Built once at process start from CLI
flags, falling back to the same environment variables Helm reads, then
passed by reference to whatever needs it.

Author: KubeMend Team
Date: 2026-01-16
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from kubemend.core.errors import ConfigError
from kubemend.storage.base import normalize_driver

TRUTHY = ("1", "true", "yes", "on")


@dataclass
class RepairConfig:
    namespace: str = "default"
    driver: str = "secret"            # secret | configmap | memory
    kubeconfig: Optional[str] = None
    kube_context: Optional[str] = None
    catalog_path: Optional[str] = None
    request_timeout: Optional[float] = None
    dry_run: bool = False
    continue_on_error: bool = False
    strict_schema: bool = False       # refuse kinds missing from the merge catalog
    summary: bool = False
    color: bool = True
    debug: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "RepairConfig":
        """Environment defaults; explicit (non-None) overrides win."""
        env = os.environ if environ is None else environ
        config = cls(
            namespace=env.get("HELM_NAMESPACE") or "default",
            driver=env.get("HELM_DRIVER", ""),
            kubeconfig=env.get("KUBECONFIG") or None,
            kube_context=env.get("HELM_KUBECONTEXT") or None,
            debug=env.get("HELM_DEBUG", "").lower() in TRUTHY,
            color="NO_COLOR" not in env,
        )
        for key, value in overrides.items():
            if not hasattr(config, key):
                raise ConfigError(f"unknown configuration option '{key}'")
            if value is not None:
                setattr(config, key, value)
        config.validate()
        return config

    def validate(self):
        self.driver = normalize_driver(self.driver)
        if self.request_timeout is not None and self.request_timeout <= 0:
            raise ConfigError("request timeout must be positive")
        if not self.namespace:
            raise ConfigError("namespace must not be empty")
