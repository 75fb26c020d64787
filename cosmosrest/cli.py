"""
cosmosrest Command-Line Interface

List databases and collections, query and bulk-insert documents, and
compute authorization tokens against a Cosmos DB account.

Author: cosmosrest Team
Date: 2026-10-15
"""

import sys
import json
import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import click

from cosmosrest import __version__
from cosmosrest.auth.masterkey import format_request_date, sign_request
from cosmosrest.control.factory import create_control_plane
from cosmosrest.core.config_manager import ConfigManager, CosmosRestConfig
from cosmosrest.core.logging_config import setup_logging
from cosmosrest.cosmos.bulk import BulkWriter
from cosmosrest.cosmos.client import PreparedWrite, ResourceClient
from cosmosrest.cosmos.context import ConnectionContext
from cosmosrest.exceptions import BatchAbortedError, CosmosRestError
from cosmosrest.resilience import RetryPolicy, with_retry
from cosmosrest.transport import create_http_client

logger = logging.getLogger("cosmosrest.cli")


class RetryingResourceClient(ResourceClient):
    """ResourceClient whose document writes are retried on transient failures."""

    def __init__(self, policy: RetryPolicy, **kwargs: Any):
        super().__init__(**kwargs)
        self.policy = policy

    async def send_write(
        self,
        context: ConnectionContext,
        prepared: PreparedWrite,
        document: Dict[str, Any]
    ) -> Dict[str, Any]:
        write = with_retry(self.policy)(super().send_write)
        return await write(context, prepared, document)


def _fail(message: str) -> None:
    click.echo(f"[ERROR] {message}", err=True)
    sys.exit(1)


def _config(ctx: click.Context) -> CosmosRestConfig:
    return ctx.obj["config"]


def _build_client(
    ctx: click.Context,
    http_client,
    retry_policy: Optional[RetryPolicy] = None
) -> ResourceClient:
    config = _config(ctx)
    kwargs: Dict[str, Any] = {
        "control_plane": (
            ctx.obj["control_plane"] if "control_plane" in ctx.obj
            else create_control_plane(config, http_client)
        ),
        "http_client": http_client,
    }
    if retry_policy is not None:
        return RetryingResourceClient(retry_policy, **kwargs)
    return ResourceClient(**kwargs)


async def _open(
    client: ResourceClient,
    config: CosmosRestConfig,
    database: Optional[str] = None,
    collection: Optional[str] = None
) -> ConnectionContext:
    account = config.account
    if not account.name:
        raise click.UsageError("An account name is required (--account or COSMOSREST_ACCOUNT)")
    return await client.open_context(
        account.name,
        resource_group=account.resource_group,
        database_name=database,
        collection_name=collection,
        master_key=account.master_key,
        subscription_id=account.subscription_id,
        api_version=account.api_version,
        key_type=account.key_type,
        token_version=account.token_version,
    )


async def _run(ctx: click.Context, operation, retry_policy: Optional[RetryPolicy] = None) -> Any:
    """Build a client, run one coroutine against it and close it."""
    config = _config(ctx)
    http_client = create_http_client(
        timeout=config.http.timeout,
        max_connections=config.http.max_connections,
        min_tls_version=config.http.min_tls_version,
        transport=ctx.obj.get("transport"),
    )
    async with http_client:
        client = _build_client(ctx, http_client, retry_policy)
        try:
            return await operation(client)
        finally:
            await client.close()


def _execute(ctx: click.Context, operation, retry_policy: Optional[RetryPolicy] = None) -> Any:
    try:
        return asyncio.run(_run(ctx, operation, retry_policy))
    except CosmosRestError as e:
        logger.debug(f"Command failed: {e.to_dict()}")
        _fail(f"{e.error_code}: {e.message}")
    except ValueError as e:
        _fail(f"Invalid configuration: {e}")


def _read_documents(path: Path) -> List[Dict[str, Any]]:
    """Read a JSON array, a single JSON object, or JSON lines."""
    text = path.read_text(encoding="utf-8").strip()
    if not text:
        return []
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        return [json.loads(line) for line in text.splitlines() if line.strip()]
    return parsed if isinstance(parsed, list) else [parsed]


@click.group()
@click.version_option(version=__version__, prog_name="cosmosrest")
@click.option(
    "--config",
    "-c",
    "config_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to configuration file (YAML or JSON)",
)
@click.option("--account", "-a", help="Cosmos DB account name")
@click.option("--resource-group", "-g", help="Resource group of the account")
@click.option("--master-key", help="Base64 master key (default: retrieved from the control plane)")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    help="Logging level",
)
@click.pass_context
def cli(
    ctx,
    config_file: Optional[Path],
    account: Optional[str],
    resource_group: Optional[str],
    master_key: Optional[str],
    log_level: Optional[str]
):
    """
    cosmosrest - Azure Cosmos DB REST client

    Talk to a Cosmos DB account over its signed REST API.
    """
    ctx.ensure_object(dict)

    overrides = {
        "account": {
            "name": account,
            "resource_group": resource_group,
            "master_key": master_key,
        },
        "logging": {"level": log_level.upper() if log_level else None},
    }
    try:
        config = ConfigManager().load(
            config_file=str(config_file) if config_file else None,
            cli_overrides=overrides,
        )
    except (ValueError, FileNotFoundError) as e:
        _fail(f"Invalid configuration: {e}")

    setup_logging(
        level=config.logging.level,
        format_type=config.logging.format,
        log_file=config.logging.file,
        rotation_size=config.logging.rotation_size,
        rotation_count=config.logging.rotation_count,
        module_levels=config.logging.module_levels,
    )
    ctx.obj["config"] = config


@cli.command()
@click.pass_context
def databases(ctx):
    """
    List the databases of the account.

    Examples:
        cosmosrest -a myaccount databases
    """
    async def operation(client: ResourceClient) -> List[str]:
        context = await _open(client, _config(ctx))
        return [db.id for db in await client.get_database(context)]

    for name in _execute(ctx, operation):
        click.echo(name)


@cli.command()
@click.argument("database")
@click.argument("collection", required=False)
@click.pass_context
def collections(ctx, database: str, collection: Optional[str]):
    """
    List the collections of a database, or show one collection.

    Examples:
        cosmosrest -a myaccount collections mydb
        cosmosrest -a myaccount collections mydb orders
    """
    async def operation(client: ResourceClient) -> List[Dict[str, Any]]:
        context = await _open(client, _config(ctx))
        found = await client.get_collection(context, database, collection)
        return [{"id": c.id, "partition_key": c.partition_key_name} for c in found]

    found = _execute(ctx, operation)
    if collection and not found:
        _fail(f"Collection '{database}/{collection}' not found")
    for entry in found:
        click.echo(f"{entry['id']}\t{entry['partition_key'] or '-'}")


@cli.command()
@click.argument("database")
@click.argument("collection")
@click.option("--id", "document_id", help="Only return the document with this id")
@click.option("--partition-key", help="Partition-key value (default: cross-partition query)")
@click.pass_context
def query(ctx, database: str, collection: str, document_id: Optional[str], partition_key: Optional[str]):
    """
    Query documents of a collection and print them as JSON.

    Examples:
        cosmosrest -a myaccount query mydb orders
        cosmosrest -a myaccount query mydb orders --id order-1 --partition-key DE
    """
    async def operation(client: ResourceClient) -> List[Dict[str, Any]]:
        context = await _open(client, _config(ctx), database, collection)
        return await client.query_documents(
            context, id_value=document_id, partition_key_value=partition_key
        )

    click.echo(json.dumps(_execute(ctx, operation), indent=2))


@cli.command()
@click.argument("database")
@click.argument("collection")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--upsert", is_flag=True, help="Replace documents that already exist")
@click.option("--sync", "sequential", is_flag=True, help="Write one document at a time")
@click.option(
    "--retries",
    type=click.IntRange(min=1),
    help="Attempts per upsert on transient failures (default: retry.max_attempts)",
)
@click.pass_context
def insert(
    ctx,
    database: str,
    collection: str,
    file: Path,
    upsert: bool,
    sequential: bool,
    retries: Optional[int]
):
    """
    Write the documents of a JSON or JSON-lines file.

    Only upserts are retried; a retried create could fail with a conflict
    after the first attempt succeeded.

    Examples:
        cosmosrest -a myaccount insert mydb orders orders.json
        cosmosrest -a myaccount insert mydb orders orders.jsonl --upsert --retries 5
    """
    try:
        documents = _read_documents(file)
    except ValueError as e:
        _fail(f"Could not parse {file}: {e}")

    config = _config(ctx)
    retry_policy = None
    if upsert:
        retry_policy = RetryPolicy(
            max_attempts=retries or config.retry.max_attempts,
            initial_backoff=config.retry.initial_backoff,
            max_backoff=config.retry.max_backoff,
        )

    async def operation(client: ResourceClient):
        context = await _open(client, config, database, collection)
        writer = BulkWriter(
            client,
            max_concurrency=config.bulk.max_concurrency,
            admission_timeout=config.bulk.admission_timeout,
        )
        try:
            return await writer.write_many(context, documents, upsert=upsert, use_async=not sequential)
        except BatchAbortedError:
            await writer.drain()
            raise

    result = _execute(ctx, operation, retry_policy)
    click.echo(
        f"[OK] Wrote {result.written}/{result.total} document(s) "
        f"({result.mode}, {result.fallback_writes} inline)"
    )


@cli.command()
@click.argument("verb")
@click.argument("resource_type", type=click.Choice(["dbs", "colls", "docs"]))
@click.argument("resource_link")
@click.option("--date", help="RFC1123 date to sign (default: now)")
@click.pass_context
def sign(ctx, verb: str, resource_type: str, resource_link: str, date: Optional[str]):
    """
    Print the x-ms-date and Authorization headers for a request.

    Examples:
        cosmosrest --master-key <key> sign GET dbs dbs
        cosmosrest --master-key <key> sign POST docs dbs/mydb/colls/orders
    """
    account = _config(ctx).account
    if not account.master_key:
        _fail("A master key is required (--master-key or COSMOSREST_MASTER_KEY)")

    date = date or format_request_date()
    try:
        signature = sign_request(
            verb, resource_link, resource_type, date, account.master_key,
            key_type=account.key_type, token_version=account.token_version,
        )
    except CosmosRestError as e:
        _fail(f"{e.error_code}: {e.message}")

    click.echo(f"x-ms-date: {signature.date}")
    click.echo(f"authorization: {signature.token}")


def main():
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
