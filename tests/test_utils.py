import json
from types import SimpleNamespace

import pytest

import locker.utils
from locker.utils import contract_type_from_artifact, get_contract_container
from tests.conftest import LOCKER_NAME, locker_abi

BYTECODE = "0x6080604052348015600f57600080fd5b50"


def _write_artifact(build_dir, name=LOCKER_NAME, **overrides):
    artifact = {
        "_format": "hh-sol-artifact-1",
        "contractName": name,
        "sourceName": f"contracts/{name}.sol",
        "abi": locker_abi(),
        "bytecode": BYTECODE,
        "deployedBytecode": BYTECODE,
    }
    artifact.update(overrides)
    artifact_dir = build_dir / f"{name}.sol"
    artifact_dir.mkdir(parents=True, exist_ok=True)
    filepath = artifact_dir / f"{name}.json"
    filepath.write_text(json.dumps(artifact))
    (artifact_dir / f"{name}.dbg.json").write_text(json.dumps({"_format": "hh-sol-dbg-1"}))
    return filepath


@pytest.fixture
def empty_project(monkeypatch):
    monkeypatch.setattr(locker.utils, "project", SimpleNamespace(dependencies={}))


def test_contract_type_from_artifact(tmp_path):
    filepath = _write_artifact(tmp_path)
    contract_type = contract_type_from_artifact(filepath)

    assert contract_type.name == LOCKER_NAME
    assert {m.name for m in contract_type.methods} == {"batchUnlock", "initialize"}
    assert BYTECODE[2:] in str(contract_type.deployment_bytecode.bytecode)


def test_malformed_artifact(tmp_path):
    filepath = _write_artifact(tmp_path)
    artifact = json.loads(filepath.read_text())
    del artifact["bytecode"]
    filepath.write_text(json.dumps(artifact))

    with pytest.raises(ValueError, match="bytecode"):
        contract_type_from_artifact(filepath)


def test_template_resolved_from_compiled_artifacts(tmp_path, empty_project):
    _write_artifact(tmp_path)
    container = get_contract_container(LOCKER_NAME, build_dir=tmp_path)
    assert container.contract_type.name == LOCKER_NAME


def test_project_contract_takes_precedence(tmp_path, monkeypatch):
    _write_artifact(tmp_path)
    project_container = object()
    monkeypatch.setattr(
        locker.utils, "project", SimpleNamespace(dependencies={}, DualTokenLocker=project_container)
    )
    assert get_contract_container(LOCKER_NAME, build_dir=tmp_path) is project_container


def test_dependency_contract(tmp_path, monkeypatch):
    proxy_container = object()
    dependency = SimpleNamespace(TransparentUpgradeableProxy=proxy_container)
    monkeypatch.setattr(
        locker.utils,
        "project",
        SimpleNamespace(dependencies={"openzeppelin": {"5.0.0": dependency}}),
    )
    container = get_contract_container("TransparentUpgradeableProxy", build_dir=tmp_path)
    assert container is proxy_container


def test_unknown_template(tmp_path, empty_project):
    with pytest.raises(ValueError, match="No contract found with name 'DualTokenLocker'"):
        get_contract_container(LOCKER_NAME, build_dir=tmp_path / "missing")


def test_ambiguous_artifacts(tmp_path, empty_project):
    _write_artifact(tmp_path / "a")
    _write_artifact(tmp_path / "b")
    with pytest.raises(ValueError, match="Ambiguous"):
        get_contract_container(LOCKER_NAME, build_dir=tmp_path)
