import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import typer
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import ConnectionFailure

from collection_accessor.core.exceptions import AccessorException, StoreConnectionError
from collection_accessor.core.logging import configure_logging
from collection_accessor.core.mongodb import MongoDB
from collection_accessor.repositories.mongo_repo import MongoRepository

app = typer.Typer(help="CollectionAccessor CLI")

T = TypeVar("T")


def _run(action: Callable[[MongoDB, AsyncIOMotorDatabase], Awaitable[T]]) -> T:
    async def runner() -> T:
        storage = MongoDB()
        async with storage as db:
            try:
                return await action(storage, db)
            except ConnectionFailure as e:
                raise StoreConnectionError(
                    "MongoDB is unreachable", details={"reason": str(e)}
                ) from e

    try:
        return asyncio.run(runner())
    except AccessorException as e:
        typer.secho(f"{e.error_code}: {e.message}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from e


@app.callback()
def main(log_level: str = typer.Option("WARNING", help="Logging level")) -> None:
    configure_logging(log_level.upper())


@app.command()
def ping() -> None:
    """
    Check that MongoDB is reachable
    """

    async def action(storage: MongoDB, db: AsyncIOMotorDatabase) -> None:
        await storage.ping()

    _run(action)
    typer.echo("ok")


@app.command()
def count(collection: str) -> None:
    """
    Print the exact number of documents in a collection
    """

    async def action(storage: MongoDB, db: AsyncIOMotorDatabase) -> int:
        return await MongoRepository(db, collection).count({})

    typer.echo(_run(action))


@app.command()
def clear(
    collection: str,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """
    Delete every document in a collection
    """
    if not yes:
        typer.confirm(f"Delete all documents in '{collection}'?", abort=True)

    async def action(storage: MongoDB, db: AsyncIOMotorDatabase) -> int:
        return await MongoRepository(db, collection).delete_many({})

    typer.echo(f"Deleted {_run(action)} documents from '{collection}'")


if __name__ == "__main__":
    app()
