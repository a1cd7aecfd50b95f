import logging
from typing import Any, Dict, List, Optional

from .config import SecurityPolicySettings
from .models import CategoryValue, SecurityRuleSpec

logger = logging.getLogger(__name__)

API_VERSION = "3.1.0"


def rule_name(policy: SecurityPolicySettings, value: CategoryValue) -> str:
    return f"{policy.name_prefix}{value.key}-{value.value}"


def build_rule_specs(policy: SecurityPolicySettings, values: List[CategoryValue]) -> List[SecurityRuleSpec]:
    """One rule per category value, in configuration order."""
    return [
        SecurityRuleSpec(
            name=rule_name(policy, v),
            category_key=v.key,
            category_value=v.value,
            action=policy.action,
            description=v.description or f"Traffic policy for {v.key}:{v.value}",
            app_type=policy.app_type,
        )
        for v in values
    ]


def _target_params(rule: SecurityRuleSpec) -> Dict[str, List[str]]:
    params = {rule.category_key: [rule.category_value]}
    if rule.app_type and rule.category_key != "AppType":
        params["AppType"] = [rule.app_type]
    return params


def build_rule_body(rule: SecurityRuleSpec, existing: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Build the network_security_rule document for ``rule``.

    When ``existing`` (the listed entity) is given, its uuid and spec_version
    are carried into the metadata so the PUT replaces that revision.
    """
    metadata: Dict[str, Any] = {"kind": "network_security_rule"}
    if existing:
        ex_meta = existing.get("metadata") or {}
        for k in ("uuid", "spec_version", "categories"):
            if k in ex_meta:
                metadata[k] = ex_meta[k]

    return {
        "api_version": API_VERSION,
        "metadata": metadata,
        "spec": {
            "name": rule.name,
            "description": rule.description,
            "resources": {
                "app_rule": {
                    "action": rule.action,
                    "target_group": {
                        "peer_specification_type": "FILTER",
                        "default_internal_policy": "DENY_ALL",
                        "filter": {
                            "type": "CATEGORIES_MATCH_ALL",
                            "kind_list": ["vm"],
                            "params": _target_params(rule),
                        },
                    },
                    "inbound_allow_list": [{"peer_specification_type": "ALL"}],
                    "outbound_allow_list": [{"peer_specification_type": "ALL"}],
                }
            },
        },
    }


def index_rules_by_name(entities: List[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    """Map listed network_security_rule entities by spec name."""
    out: Dict[str, Dict[str, Any]] = {}
    for e in entities:
        name = (e.get("spec") or {}).get("name") or (e.get("status") or {}).get("name")
        if not name:
            continue
        if name in out:
            logger.warning("Multiple security rules named '%s'; using the first.", name)
            continue
        out[name] = e
    return out
