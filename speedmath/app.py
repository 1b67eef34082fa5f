"""
Speed Math trainer - application wiring.

This module reads the environment, configures logging, builds the
persistence store and exposes a factory for the game session that a
UI layer drives.
"""

import logging
import os

import boto3

from speedmath.engine import GameSession, SessionSnapshot
from speedmath.persistence import DynamoDbStore, InMemoryStore, KeyValueStore, PersistenceManager
from speedmath.scheduler import Scheduler

logger = logging.getLogger(__name__)

# Which store backs the player data: "memory" or "dynamodb"
STORE_BACKEND = os.environ.get("SPEEDMATH_STORE", "memory")

# DynamoDB table name for persistence (configurable via environment variable)
DYNAMODB_TABLE_NAME = os.environ.get("DYNAMODB_TABLE_NAME", "SpeedMathUserData")

# Partition key value of the local player
PLAYER_ID = os.environ.get("SPEEDMATH_PLAYER_ID", "local-player")

# Optional endpoint override, e.g. LocalStack
AWS_ENDPOINT_URL = os.environ.get("AWS_ENDPOINT_URL")

LOG_LEVEL = os.environ.get("SPEEDMATH_LOG_LEVEL", "INFO")


def configure_logging(level: str = LOG_LEVEL) -> None:
    """Attach a stream handler to the package logger."""
    package_logger = logging.getLogger("speedmath")
    package_logger.setLevel(level.upper())
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        package_logger.addHandler(handler)


def create_store(
    backend: str = STORE_BACKEND,
    table_name: str = DYNAMODB_TABLE_NAME,
    player_id: str = PLAYER_ID,
    endpoint_url: str | None = AWS_ENDPOINT_URL,
) -> KeyValueStore:
    """
    Build the store selected by configuration.

    Raises:
        ValueError: If the backend name is unknown.
    """
    if backend == "memory":
        return InMemoryStore()
    if backend == "dynamodb":
        dynamodb = boto3.resource("dynamodb", endpoint_url=endpoint_url)
        logger.info(f"Using DynamoDB table '{table_name}' for player '{player_id}'")
        return DynamoDbStore(dynamodb.Table(table_name), player_id)
    raise ValueError(f"Unknown store backend: {backend}. Expected 'memory' or 'dynamodb'.")


def log_snapshot(snapshot: SessionSnapshot) -> None:
    """Debug log of every published state change."""
    logger.debug(
        f"Snapshot: state={snapshot.state.value}, score={snapshot.score}, "
        f"remaining={snapshot.time_remaining:.1f}, solved={snapshot.problems_solved}, "
        f"streak={snapshot.streak}, level={snapshot.level}"
    )


def create_session(scheduler: Scheduler, store: KeyValueStore | None = None) -> GameSession:
    """
    Create a game session with stored data loaded.

    Args:
        scheduler: The UI's scheduling context.
        store: Backing store; built from the environment when omitted.

    Returns:
        A GameSession in the IDLE state.
    """
    persistence = PersistenceManager(store if store is not None else create_store())
    session = GameSession(persistence, scheduler)
    session.subscribe(log_snapshot)
    return session
