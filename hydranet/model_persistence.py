"""
model_persistence.py
~~~~~~~~~~~~~~~~~~~~

SQLite-based store for hydranet networks.

Networks are kept in their plain-text dump format (see hydranet.network),
together with their kind and topology, so a stored model stays readable
and can be exported to a file unchanged.
"""

import os
import json
import sqlite3
import logging
from contextlib import contextmanager
from typing import Optional, List, Dict, Any, Generator

from hydranet import config
from hydranet.errors import MalformedPersistedStateError
from hydranet.network import NeuralNetwork, NETWORK_TYPES

# Configure module logger
logger = logging.getLogger(__name__)


class ModelDatabase:
    """
    Manages the SQLite database holding persisted networks.

    The database stores:
    - Network metadata (kind, topology, training status, accuracy)
    - Each network's text dump
    """

    def __init__(self, db_path: str = 'models/networks.db'):
        """
        Initialize the database connection.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = db_path
        self._ensure_directory()
        self._initialize_schema()

    def _ensure_directory(self) -> None:
        db_dir = os.path.dirname(self.db_path)
        if db_dir and not os.path.exists(db_dir):
            os.makedirs(db_dir)

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Context manager for database connections.

        Commits on success, rolls back and re-raises on error.
        """
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _initialize_schema(self) -> None:
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS networks (
                    network_id TEXT PRIMARY KEY,
                    kind TEXT NOT NULL,
                    architecture TEXT NOT NULL,
                    network_data TEXT NOT NULL,
                    trained INTEGER NOT NULL DEFAULT 0,
                    accuracy REAL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            ''')
            cursor.execute('''
                CREATE INDEX IF NOT EXISTS idx_kind
                ON networks(kind)
            ''')
            cursor.execute('''
                CREATE INDEX IF NOT EXISTS idx_created_at
                ON networks(created_at DESC)
            ''')

    @staticmethod
    def _row_to_metadata(row: sqlite3.Row) -> Dict[str, Any]:
        return {
            'network_id': row['network_id'],
            'kind': row['kind'],
            'architecture': json.loads(row['architecture']),
            'trained': bool(row['trained']),
            'accuracy': row['accuracy'],
            'created_at': row['created_at'],
            'updated_at': row['updated_at']
        }

    def save_network_to_db(
        self,
        network: NeuralNetwork,
        network_id: str,
        trained: bool = True,
        accuracy: Optional[float] = None
    ) -> bool:
        """
        Save a network to the database, replacing any with the same ID.

        Args:
            network: Network to save
            network_id: Unique identifier for the network
            trained: Whether the network has been trained
            accuracy: Training accuracy (0.0 to 1.0)

        Returns:
            bool: True once the row is written

        Raises:
            ValueError: If accuracy is out of range or the network kind is
                not registered
        """
        if accuracy is not None and not 0.0 <= accuracy <= 1.0:
            raise ValueError(
                f"Accuracy must be between 0.0 and 1.0, got {accuracy}"
            )
        if network.kind not in NETWORK_TYPES:
            raise ValueError(f"Unknown network kind: {network.kind!r}")

        architecture_json = json.dumps(list(network.topology))

        with self._get_connection() as conn:
            conn.execute('''
                INSERT INTO networks
                (network_id, kind, architecture, network_data, trained,
                 accuracy)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(network_id) DO UPDATE SET
                    kind = excluded.kind,
                    architecture = excluded.architecture,
                    network_data = excluded.network_data,
                    trained = excluded.trained,
                    accuracy = excluded.accuracy,
                    updated_at = CURRENT_TIMESTAMP
            ''', (
                network_id,
                network.kind,
                architecture_json,
                network.dumps(),
                1 if trained else 0,
                accuracy
            ))

        logger.info(
            f"Saved {network.kind} network '{network_id}' with topology "
            f"{list(network.topology)}, trained={trained}, accuracy={accuracy}"
        )
        return True

    def load_network_from_db(self, network_id: str) -> Optional[NeuralNetwork]:
        """
        Load a network from the database.

        Returns:
            The restored network, or None if not found

        Raises:
            MalformedPersistedStateError: If the stored dump is truncated or
                its kind is unknown
        """
        with self._get_connection() as conn:
            row = conn.execute(
                'SELECT kind, network_data FROM networks WHERE network_id = ?',
                (network_id,)
            ).fetchone()

        if row is None:
            logger.warning(f"Network '{network_id}' not found")
            return None

        network_class = NETWORK_TYPES.get(row['kind'])
        if network_class is None:
            raise MalformedPersistedStateError(
                f"Network '{network_id}' has unknown kind {row['kind']!r}"
            )

        network = network_class.loads(row['network_data'])
        logger.info(f"Loaded network '{network_id}'")
        return network

    def list_networks_from_db(self) -> List[Dict[str, Any]]:
        """List all networks with metadata, newest first."""
        with self._get_connection() as conn:
            rows = conn.execute('''
                SELECT network_id, kind, architecture, trained, accuracy,
                       created_at, updated_at
                FROM networks
                ORDER BY created_at DESC, network_id
            ''').fetchall()

        networks = [self._row_to_metadata(row) for row in rows]
        logger.debug(f"Listed {len(networks)} networks")
        return networks

    def delete_network_from_db(self, network_id: str) -> bool:
        """
        Delete a network from the database.

        Returns:
            bool: True if deleted, False if not found
        """
        with self._get_connection() as conn:
            cursor = conn.execute(
                'DELETE FROM networks WHERE network_id = ?',
                (network_id,)
            )
            deleted = cursor.rowcount > 0

        if deleted:
            logger.info(f"Deleted network '{network_id}'")
        else:
            logger.warning(f"Could not delete network '{network_id}': not found")
        return deleted

    def get_network_metadata_from_db(
        self,
        network_id: str
    ) -> Optional[Dict[str, Any]]:
        """Get network metadata without restoring the network."""
        with self._get_connection() as conn:
            row = conn.execute('''
                SELECT network_id, kind, architecture, trained, accuracy,
                       created_at, updated_at
                FROM networks
                WHERE network_id = ?
            ''', (network_id,)).fetchone()

        if row is None:
            logger.warning(f"Metadata for network '{network_id}' not found")
            return None
        return self._row_to_metadata(row)

    def delete_old_networks_from_db(self, days: int) -> int:
        """
        Delete networks created more than ``days`` days ago.

        Returns:
            int: Number of deleted networks

        Raises:
            ValueError: If days is negative
        """
        if days < 0:
            raise ValueError(f"days must be non-negative, got {days}")

        with self._get_connection() as conn:
            cursor = conn.execute('''
                DELETE FROM networks
                WHERE julianday('now') - julianday(created_at) > ?
            ''', (days,))
            deleted = cursor.rowcount

        logger.info(f"Deleted {deleted} network(s) older than {days} day(s)")
        return deleted


def _get_db(model_dir: Optional[str]) -> ModelDatabase:
    return ModelDatabase(
        db_path=os.path.join(model_dir or config.DEFAULT_MODEL_DIR, 'networks.db')
    )


def _valid_id(network_id: Any) -> bool:
    if not network_id or not isinstance(network_id, str):
        logger.error("Invalid network_id: must be a non-empty string")
        return False
    return True


def save_network(
    network: NeuralNetwork,
    network_id: str,
    model_dir: Optional[str] = None,
    trained: bool = True,
    accuracy: Optional[float] = None
) -> bool:
    """
    Save a network to the model store.

    Args:
        network: The network to save
        network_id: A unique identifier for the network
        model_dir: Directory holding networks.db (defaults to
            HYDRANET_MODEL_DIR or 'models')
        trained: Whether the network has been trained
        accuracy: The accuracy of the trained network (0.0 to 1.0)

    Returns:
        bool: True if the save was successful, False otherwise

    Example:
        >>> net = MultiLayerPerceptron([2, 7, 1])
        >>> save_network(net, "xor", trained=False)
        True
    """
    if not _valid_id(network_id):
        return False

    try:
        return _get_db(model_dir).save_network_to_db(
            network, network_id, trained, accuracy
        )
    except ValueError as e:
        logger.error(f"Validation error saving network '{network_id}': {e}")
        return False
    except sqlite3.Error as e:
        logger.error(f"Database error saving network '{network_id}': {e}")
        return False


def load_network(
    network_id: str,
    model_dir: Optional[str] = None
) -> Optional[NeuralNetwork]:
    """
    Load a network from the model store.

    Returns:
        The restored network, or None if it is missing or unreadable

    Example:
        >>> net = load_network("xor")
        >>> if net:
        ...     print(net.feed([0.0, 1.0]))
    """
    if not _valid_id(network_id):
        return None

    try:
        return _get_db(model_dir).load_network_from_db(network_id)
    except MalformedPersistedStateError as e:
        logger.error(f"Corrupt data loading network '{network_id}': {e}")
        return None
    except sqlite3.Error as e:
        logger.error(f"Database error loading network '{network_id}': {e}")
        return None


def list_saved_networks(model_dir: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    List all saved networks with their metadata.

    Example:
        >>> for net in list_saved_networks():
        ...     print(f"{net['network_id']}: {net['kind']} {net['architecture']}")
    """
    try:
        return _get_db(model_dir).list_networks_from_db()
    except sqlite3.Error as e:
        logger.error(f"Database error listing networks: {e}")
        return []
    except json.JSONDecodeError as e:
        logger.error(f"JSON decode error listing networks: {e}")
        return []


def delete_network(network_id: str, model_dir: Optional[str] = None) -> bool:
    """
    Delete a saved network.

    Returns:
        bool: True if deletion was successful, False otherwise
    """
    if not _valid_id(network_id):
        return False

    try:
        return _get_db(model_dir).delete_network_from_db(network_id)
    except sqlite3.Error as e:
        logger.error(f"Database error deleting network '{network_id}': {e}")
        return False


def get_network_metadata(
    network_id: str,
    model_dir: Optional[str] = None
) -> Optional[Dict[str, Any]]:
    """
    Get metadata for a network without restoring it.

    Example:
        >>> metadata = get_network_metadata("xor")
        >>> if metadata:
        ...     print(f"Accuracy: {metadata['accuracy']}")
    """
    if not _valid_id(network_id):
        return None

    try:
        return _get_db(model_dir).get_network_metadata_from_db(network_id)
    except sqlite3.Error as e:
        logger.error(f"Database error getting metadata for '{network_id}': {e}")
        return None
    except json.JSONDecodeError as e:
        logger.error(f"JSON decode error getting metadata for '{network_id}': {e}")
        return None


def delete_old_networks(days: int = 2, model_dir: Optional[str] = None) -> int:
    """
    Delete networks created more than ``days`` days ago.

    Returns:
        int: Number of deleted networks, or -1 on a database error

    Raises:
        ValueError: If days is negative
    """
    try:
        return _get_db(model_dir).delete_old_networks_from_db(days)
    except sqlite3.Error as e:
        logger.error(f"Database error deleting old networks: {e}")
        return -1
