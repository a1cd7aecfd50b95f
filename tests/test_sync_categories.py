import copy

import pytest

from conftest import make_response, paged_list
from prism_categories.config import parse_settings
from prism_categories.exceptions import ApiError, TransportError
from prism_categories.sync_categories import run_sync


class FakePrism:
    """Stateful stand-in for the Prism Central v3 endpoints used by run_sync."""

    def __init__(self):
        self.categories = {}
        self.rules = {}
        self.fail_on = None

    def __call__(self, method, path, payload):
        if self.fail_on and path == self.fail_on:
            return make_response(409, {"code": 409, "message_list": [{"details": "conflict"}]})

        if path == "clusters/list":
            return paged_list([{"spec": {"name": "cl1"}, "metadata": {"uuid": "c-1"}}])(payload)
        if path == "categories/list":
            return paged_list([{"name": k} for k in self.categories])(payload)
        if path == "network_security_rules/list":
            return paged_list(list(self.rules.values()))(payload)
        if path.startswith("tasks/"):
            return {"status": "SUCCEEDED"}

        parts = path.split("/")
        if parts[0] == "categories" and method == "PUT":
            if len(parts) == 2:
                self.categories.setdefault(parts[1], {})
            else:
                self.categories[parts[1]][parts[2]] = payload["description"]
            return copy.deepcopy(payload)

        if path == "network_security_rules" and method == "POST":
            uuid = f"r-{len(self.rules) + 1}"
            entity = copy.deepcopy(payload)
            entity["metadata"].update({"uuid": uuid, "spec_version": 0})
            self.rules[uuid] = entity
            return make_response(202, {"status": {"execution_context": {"task_uuid": f"t-{uuid}"}}})

        if parts[0] == "network_security_rules" and method == "PUT":
            entity = copy.deepcopy(payload)
            entity["metadata"]["spec_version"] += 1
            self.rules[parts[1]] = entity
            return make_response(202, {"status": {"execution_context": {"task_uuid": "t-upd"}}})

        raise AssertionError(f"unexpected call {method} {path}")


def _settings(categories, **policy):
    return parse_settings(
        {
            "prism": {"host": "pc.test", "username": "admin", "password": "secret"},
            "categories": categories,
            "security_policy": policy or None,
        }
    )


@pytest.fixture
def prism():
    return FakePrism()


def test_empty_key_is_skipped(make_client, prism):
    client = make_client(prism)
    settings = _settings({"AppType": {}, "Web": {"Frontend": "desc"}})

    assert run_sync(settings, client) == 0

    puts = client.session.paths("PUT")
    assert puts == ["categories/Web", "categories/Web/Frontend"]
    creates = [p for m, p, _ in client.session.calls if m == "POST" and p == "network_security_rules"]
    assert len(creates) == 1
    assert not any("AppType" in p for p in client.session.paths())


def test_rule_targets_category_value(make_client, prism):
    client = make_client(prism)
    run_sync(_settings({"Web": {"Frontend": "desc"}}, name_prefix="flow-", app_type="Shop"), client)

    (rule,) = prism.rules.values()
    assert rule["spec"]["name"] == "flow-Web-Frontend"
    app_rule = rule["spec"]["resources"]["app_rule"]
    assert app_rule["action"] == "MONITOR"
    assert app_rule["target_group"]["filter"]["params"] == {"Web": ["Frontend"], "AppType": ["Shop"]}


def test_run_is_idempotent(make_client, prism):
    settings = _settings({"Web": {"Frontend": "desc", "Backend": "db tier"}})

    run_sync(settings, make_client(prism))
    first_categories = copy.deepcopy(prism.categories)
    first_rule_names = sorted(r["spec"]["name"] for r in prism.rules.values())

    second = make_client(prism)
    run_sync(settings, second)

    assert prism.categories == first_categories == {"Web": {"Frontend": "desc", "Backend": "db tier"}}
    assert sorted(r["spec"]["name"] for r in prism.rules.values()) == first_rule_names
    assert len(prism.rules) == 2
    # Second run updates the existing rules instead of creating new ones.
    assert "network_security_rules" not in second.session.paths("POST")
    assert sorted(second.session.paths("PUT"))[-2:] == ["network_security_rules/r-1", "network_security_rules/r-2"]
    assert all(r["metadata"]["spec_version"] == 1 for r in prism.rules.values())


def test_security_rules_disabled(make_client, prism):
    client = make_client(prism)
    run_sync(_settings({"Web": {"Frontend": ""}}, enabled=False), client)

    assert prism.rules == {}
    assert not any(p.startswith("network_security_rules") for p in client.session.paths())


def test_api_error_aborts_run(make_client, prism):
    prism.fail_on = "categories/Web/Frontend"
    client = make_client(prism)

    with pytest.raises(ApiError, match="conflict"):
        run_sync(_settings({"Web": {"Frontend": "desc", "Backend": "x"}}), client)

    # Nothing after the failing call was attempted.
    assert client.session.paths()[-1] == "categories/Web/Frontend"
    assert "categories/Web/Backend" not in client.session.paths()


def test_listed_rule_without_uuid_aborts(make_client, prism):
    prism.rules["broken"] = {"spec": {"name": "Web-Frontend"}, "metadata": {}}
    client = make_client(prism)

    with pytest.raises(TransportError, match="uuid"):
        run_sync(_settings({"Web": {"Frontend": "desc"}}), client)

    assert not any(p.startswith("network_security_rules/") for p in client.session.paths("PUT"))
