import logging
from dataclasses import dataclass
from typing import List, Optional

from .config import Settings
from .exceptions import TransportError
from .logging_config import DATA, STEP, SUCCESS, SUM
from .models import CategoryValue
from .prism_client import PrismClient
from .security_rules import build_rule_body, build_rule_specs, index_rules_by_name

logger = logging.getLogger(__name__)


@dataclass
class SyncSummary:
    category_keys: int = 0
    category_values: int = 0
    rules_created: int = 0
    rules_updated: int = 0


def _existing_category_keys(client: PrismClient) -> set:
    keys = set()
    for e in client.list_all("categories", "category"):
        name = e.get("name") or (e.get("spec") or {}).get("name")
        if name:
            keys.add(name)
    return keys


def sync_categories(client: PrismClient, settings: Settings, summary: SyncSummary) -> List[CategoryValue]:
    """
    Upsert every configured category key and value.

    A key with no values is skipped entirely. Returns the values that were
    upserted, in configuration order.
    """
    logger.log(STEP, "Configuring categories")
    existing = _existing_category_keys(client)
    upserted: List[CategoryValue] = []

    for key, values in settings.categories.items():
        if not values:
            logger.warning("Category %s has no values configured; skipping.", key)
            continue

        logger.info(
            "%s category key %s (%s values)",
            "Updating" if key in existing else "Creating",
            key,
            len(values),
        )
        client.upsert_category_key(key)
        summary.category_keys += 1

        for value, description in values.items():
            cv = CategoryValue(key=key, value=value, description=description)
            client.upsert_category_value(cv)
            summary.category_values += 1
            upserted.append(cv)

    return upserted


def sync_security_rules(
    client: PrismClient,
    settings: Settings,
    values: List[CategoryValue],
    summary: SyncSummary,
) -> None:
    """Create (or update in place) one security rule per category value."""
    logger.log(STEP, "Configuring security rules")
    if not values:
        logger.info("No category values upserted; no security rules to configure.")
        return

    existing = index_rules_by_name(client.list_all("network_security_rules", "network_security_rule"))

    for rule in build_rule_specs(settings.security_policy, values):
        current = existing.get(rule.name)
        body = build_rule_body(rule, current)
        logger.log(DATA, "Security rule %s: %s", rule.name, body["spec"]["resources"]["app_rule"]["target_group"])

        if current:
            uuid = body["metadata"].get("uuid")
            if not uuid:
                raise TransportError(
                    f"Listed security rule {rule.name!r} has no metadata.uuid; cannot update it"
                )
            logger.info("Updating security rule %s (%s)", rule.name, uuid)
            client.update_security_rule(uuid, body)
            summary.rules_updated += 1
        else:
            logger.info("Creating security rule %s", rule.name)
            client.create_security_rule(body)
            summary.rules_created += 1


def run_sync(settings: Settings, client: Optional[PrismClient] = None) -> int:
    """
    Main configuration flow:
    - Verify credentials by listing the clusters known to Prism Central.
    - Upsert category keys and values.
    - Create or update one network security rule per category value.

    Any API or transport error propagates to the caller; nothing already
    applied is rolled back.
    """
    if client is None:
        client = PrismClient.from_settings(settings.prism)

    logger.log(STEP, "Connecting to Prism Central %s", settings.prism.host)
    clusters = client.list_all("clusters", "cluster")
    for c in clusters:
        name = (c.get("spec") or {}).get("name") or (c.get("status") or {}).get("name")
        logger.log(DATA, "Cluster: %s (%s)", name, (c.get("metadata") or {}).get("uuid"))

    summary = SyncSummary()
    values = sync_categories(client, settings, summary)

    if settings.security_policy.enabled:
        sync_security_rules(client, settings, values, summary)
    else:
        logger.info("Security rule configuration disabled.")

    logger.log(
        SUM,
        "Category keys: %s, values: %s, security rules created: %s, updated: %s",
        summary.category_keys,
        summary.category_values,
        summary.rules_created,
        summary.rules_updated,
    )
    logger.log(SUCCESS, "Configuration of %s completed", settings.prism.host)
    return 0
