"""
Tests for the command-line interface.
"""

import json
import logging

import httpx
import pytest
import yaml
from click.testing import CliRunner

from cosmosrest.auth.masterkey import compute_signature
from cosmosrest.cli import cli
from cosmosrest.control.memory import InMemoryControlPlane

DATE = "Wed, 21 Oct 2020 07:28:00 GMT"


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def invoke(runner, fake_service, master_key):
    """Run a command against the fake data plane with a master key."""
    def run(*args, obj=None, with_key=True):
        base = ["--account", "testacct", "--log-level", "ERROR"]
        if with_key:
            base += ["--master-key", master_key]
        state = {"transport": httpx.MockTransport(fake_service)}
        state.update(obj or {})
        return runner.invoke(cli, base + list(args), obj=state)
    return run


class TestSign:
    """Tests for the sign command."""

    def test_sign(self, runner, master_key):
        result = runner.invoke(
            cli, ["--master-key", master_key, "sign", "GET", "colls", "dbs/shop", "--date", DATE]
        )

        assert result.exit_code == 0
        assert f"x-ms-date: {DATE}" in result.output
        expected = compute_signature("GET", "dbs/shop", "colls", DATE, master_key)
        assert f"authorization: {expected}" in result.output

    def test_sign_requires_key(self, runner):
        result = runner.invoke(cli, ["sign", "GET", "dbs", "dbs"])

        assert result.exit_code == 1
        assert "[ERROR]" in result.output

    def test_sign_invalid_key(self, runner):
        result = runner.invoke(cli, ["--master-key", "###", "sign", "GET", "dbs", "dbs"])

        assert result.exit_code == 1
        assert "InvalidCredential" in result.output

    def test_sign_rejects_unknown_resource_type(self, runner, master_key):
        result = runner.invoke(cli, ["--master-key", master_key, "sign", "GET", "users", "dbs/x"])
        assert result.exit_code == 2


class TestListings:
    """Tests for the databases and collections commands."""

    def test_databases(self, invoke):
        result = invoke("databases")

        assert result.exit_code == 0
        assert result.output.split() == ["shop"]

    def test_databases_with_control_plane_key(self, invoke, master_key):
        plane = InMemoryControlPlane()
        plane.add_account("rg", "testacct", key=master_key)
        plane.add_database("rg", "testacct", "archive")

        result = invoke("--resource-group", "rg", "databases", obj={"control_plane": plane}, with_key=False)

        assert result.exit_code == 0
        assert sorted(result.output.split()) == ["archive", "shop"]

    def test_no_key_and_no_control_plane(self, invoke):
        result = invoke("databases", with_key=False)

        assert result.exit_code == 1
        assert "CredentialUnavailable" in result.output

    def test_collections(self, invoke):
        result = invoke("collections", "shop")

        assert result.exit_code == 0
        assert "orders\tCountry" in result.output
        assert "audit\t-" in result.output

    def test_named_collection_missing(self, invoke):
        result = invoke("collections", "shop", "missing")

        assert result.exit_code == 1
        assert "not found" in result.output

    def test_unknown_database(self, invoke):
        result = invoke("collections", "nowhere")

        assert result.exit_code == 1
        assert "NotFound" in result.output

    def test_account_required(self, runner, master_key):
        result = runner.invoke(cli, ["--master-key", master_key, "databases"], obj={})
        assert result.exit_code == 2


class TestQuery:
    """Tests for the query command."""

    def test_query_by_id(self, invoke, fake_service):
        documents = fake_service.documents("shop", "orders")
        documents["o-1"] = {"id": "o-1", "Country": "DE"}
        documents["o-2"] = {"id": "o-2", "Country": "FR"}

        result = invoke("query", "shop", "orders", "--id", "o-2")

        assert result.exit_code == 0
        assert json.loads(result.output) == [{"id": "o-2", "Country": "FR"}]

    def test_query_unknown_collection(self, invoke):
        result = invoke("query", "shop", "missing")

        assert result.exit_code == 1
        assert "NotFound" in result.output


class TestInsert:
    """Tests for the insert command."""

    def test_insert_json_array(self, invoke, fake_service, tmp_path):
        source = tmp_path / "orders.json"
        source.write_text(json.dumps([{"id": f"o-{i}", "Country": "DE"} for i in range(5)]))

        result = invoke("insert", "shop", "orders", str(source))

        assert result.exit_code == 0
        assert "[OK] Wrote 5/5 document(s) (async, 0 inline)" in result.output
        assert len(fake_service.documents("shop", "orders")) == 5

    def test_insert_json_lines_sync(self, invoke, fake_service, tmp_path):
        source = tmp_path / "orders.jsonl"
        source.write_text('{"id": "a", "Country": "DE"}\n{"id": "b", "Country": "DE"}\n')

        result = invoke("insert", "shop", "orders", str(source), "--sync")

        assert result.exit_code == 0
        assert "(sync," in result.output
        assert list(fake_service.documents("shop", "orders")) == ["a", "b"]

    def test_upsert_retries_throttled_writes(self, invoke, fake_service, tmp_path):
        fake_service.documents("shop", "orders")["o-1"] = {"id": "o-1", "Country": "DE", "v": 0}
        fake_service.throttle_ids = {"o-1": 2}
        source = tmp_path / "orders.json"
        source.write_text(json.dumps([{"id": "o-1", "Country": "DE", "v": 1}]))

        result = invoke("insert", "shop", "orders", str(source), "--upsert", "--retries", "3")

        assert result.exit_code == 0
        assert fake_service.documents("shop", "orders")["o-1"]["v"] == 1
        assert len(fake_service.writes()) == 3

    def test_create_not_retried(self, invoke, fake_service, tmp_path):
        fake_service.throttle_ids = {"o-1": 1}
        source = tmp_path / "orders.json"
        source.write_text(json.dumps([{"id": "o-1", "Country": "DE"}]))

        result = invoke("insert", "shop", "orders", str(source), "--retries", "3")

        assert result.exit_code == 1
        assert "BatchAborted" in result.output
        assert len(fake_service.writes()) == 1

    def test_invalid_document_file(self, invoke, tmp_path):
        source = tmp_path / "broken.json"
        source.write_text("{not json")

        result = invoke("insert", "shop", "orders", str(source))

        assert result.exit_code == 1
        assert "Could not parse" in result.output


class TestConfiguration:
    """Tests for configuration handling in the group."""

    def test_config_file(self, runner, fake_service, master_key, tmp_path):
        config_file = tmp_path / "cosmosrest.yaml"
        config_file.write_text(yaml.dump({
            "account": {"name": "testacct", "master_key": master_key},
            "logging": {"level": "ERROR"},
        }))

        result = runner.invoke(
            cli,
            ["--config", str(config_file), "databases"],
            obj={"transport": httpx.MockTransport(fake_service)},
        )

        assert result.exit_code == 0
        assert "shop" in result.output

    def test_invalid_config(self, runner, tmp_path):
        config_file = tmp_path / "cosmosrest.yaml"
        config_file.write_text(yaml.dump({"bulk": {"max_concurrency": 500}}))

        result = runner.invoke(cli, ["--config", str(config_file), "databases"], obj={})

        assert result.exit_code == 1
        assert "Invalid configuration" in result.output

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "0.1.0" in result.output
