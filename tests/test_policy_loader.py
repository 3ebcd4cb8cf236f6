"""Tests for loading guard policies from YAML."""

from pathlib import Path

import pytest
import yaml
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from paywarden.guards.loader import find_policy_path, load_policy, load_policy_from_dir
from paywarden.guards.models import GuardKind, GuardPolicy
from paywarden.guards.registry import InMemoryRuleRegistry
from paywarden.guards.signer import sign_policy


def _write(path: Path, data) -> Path:
    path.write_text(yaml.dump(data, sort_keys=False))
    return path


def test_load_fills_generated_fields(tmp_path: Path):
    path = _write(
        tmp_path / "default.yaml",
        {"guards": [{"name": "Cap", "kind": "single_tx", "config": {"limit": 10}}]},
    )
    policy = load_policy(path)

    assert policy.policy_id.startswith("pol_")
    assert policy.guards[0].id == "guard_1"
    assert policy.guards[0].kind == GuardKind.SINGLE_TX
    assert policy.guards[0].enabled


def test_malformed_config_survives_loading(tmp_path: Path):
    path = _write(
        tmp_path / "default.yaml",
        {"guards": [{"id": "b", "name": "Budget", "kind": "budget", "config": {"limit": "lots"}}]},
    )
    assert load_policy(path).guards[0].config == {"limit": "lots"}


def test_signed_policy_loads(tmp_path: Path):
    path = _write(
        tmp_path / "default.yaml",
        {"policy_id": "pol_1", "guards": [{"id": "g", "name": "Auto", "kind": "auto_approve", "config": {"threshold": 5}}]},
    )
    sign_policy(path, Ed25519PrivateKey.generate())

    policy = load_policy(path)
    assert policy.policy_id == "pol_1"
    assert len(policy.guards) == 1


def test_empty_file_raises(tmp_path: Path):
    path = tmp_path / "default.yaml"
    path.write_text("")
    with pytest.raises(ValueError, match="Empty policy"):
        load_policy(path)


def test_unknown_kind_raises(tmp_path: Path):
    path = _write(tmp_path / "default.yaml", {"guards": [{"name": "X", "kind": "velocity"}]})
    with pytest.raises(ValueError):
        load_policy(path)


def test_find_prefers_yaml_then_yml(tmp_path: Path):
    yml = _write(tmp_path / "ops.yml", {"guards": []})
    assert find_policy_path(tmp_path, "ops") == yml

    yaml_path = _write(tmp_path / "ops.yaml", {"guards": []})
    assert find_policy_path(tmp_path, "ops") == yaml_path


def test_missing_policy_raises(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_policy_from_dir(tmp_path, "default")


def test_generated_ids_skip_explicit_ones(tmp_path: Path):
    path = _write(
        tmp_path / "default.yaml",
        {
            "guards": [
                {"name": "Budget", "kind": "budget", "config": {"limit": 100, "period": "day"}},
                {"id": "guard_1", "name": "Cap", "kind": "single_tx", "config": {"limit": 5000}},
            ]
        },
    )
    policy = load_policy(path)

    assert [g.id for g in policy.guards] == ["guard_2", "guard_1"]
    assert [g.kind for g in policy.guards] == [GuardKind.BUDGET, GuardKind.SINGLE_TX]
    assert len(InMemoryRuleRegistry(policy.guards).list_rules()) == 2


def test_duplicate_explicit_ids_raise(tmp_path: Path):
    path = _write(
        tmp_path / "default.yaml",
        {
            "guards": [
                {"id": "cap", "name": "Cap", "kind": "single_tx", "config": {"limit": 10}},
                {"id": "cap", "name": "Cap again", "kind": "single_tx", "config": {"limit": 20}},
            ]
        },
    )
    with pytest.raises(ValueError, match="Duplicate guard id: cap"):
        load_policy(path)


def test_policy_model_defaults():
    policy = GuardPolicy()
    assert policy.policy_id == ""
    assert policy.guards == []
