"""
Resolution of the logical ACL models to concrete ORM classes.

ACL_GROUP_MODEL and ACL_PERMISSION_MODEL hold dotted import paths. The
resolved classes are injected into the repositories; nothing else in the
feature looks them up by name.
"""
import importlib
from dataclasses import dataclass

from app.core import config
from app.features.acl.exceptions import AclConfigurationError


MODEL_SETTINGS = {
    "group": "ACL_GROUP_MODEL",
    "permission": "ACL_PERMISSION_MODEL",
}

REQUIRED_ATTRIBUTES = {
    "group": ("id", "name", "description", "permissions", "users"),
    "permission": ("id", "name", "resource"),
}


@dataclass(frozen=True)
class AclModels:
    group: type
    permission: type


def resolve_model(key: str) -> type:
    """
    Return the ORM class bound to a logical model name.

    Raises:
        AclConfigurationError: unknown key, unset setting, bad import path, or
            a class missing one of the attributes the ACL feature queries
    """
    setting = MODEL_SETTINGS.get(key)
    if setting is None:
        raise AclConfigurationError(f"Unknown ACL model binding {key!r}")

    path = getattr(config, setting, None)
    if not path:
        raise AclConfigurationError(f"{setting} is not configured")

    module_name, _, attribute = path.rpartition(".")
    if not module_name or not attribute:
        raise AclConfigurationError(f"{setting}={path!r} is not a dotted import path")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise AclConfigurationError(f"{setting}: cannot import {module_name!r}: {e}") from e

    model = getattr(module, attribute, None)
    if not isinstance(model, type):
        raise AclConfigurationError(f"{setting}: {path!r} is not a class")

    missing = [name for name in REQUIRED_ATTRIBUTES[key] if not hasattr(model, name)]
    if missing:
        raise AclConfigurationError(
            f"{setting}: {path!r} is missing attribute(s) {', '.join(missing)}"
        )

    return model


def resolve_acl_models() -> AclModels:
    """Resolve both bindings; called at startup and per request."""
    return AclModels(group=resolve_model("group"), permission=resolve_model("permission"))
