"""
Graph store collaborators.

Every mutation (upsert, link, alias) is appended to a single lock-guarded
pending buffer; nothing reaches the backend until ``commit_pending()`` is
called. Edge endpoints are node keys resolved lazily when a batch is written,
so a link may reference a node that has not been upserted yet.

Two backends are provided:

- ``SQLiteGraphStore``: a local database file.
- ``HttpGraphStore``: a remote server accepting JSON mutation batches with a
  bearer token. The server is expected to resolve edge endpoint keys at commit
  time.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Protocol, Set, Type, runtime_checkable

import requests

from .graph_schema import Node
from .http_client import RetryableHTTPClient
from .paths import resolve_data_file

logger = logging.getLogger(__name__)


class GraphStoreError(RuntimeError):
    """Raised when the store rejects a mutation, a schema, or a commit."""


@dataclass(frozen=True)
class NodeRef:
    """Handle to a node identified by its type and natural key."""

    node_type: str
    node_key: str

    @classmethod
    def key(cls, node_type: str, node_key: str) -> "NodeRef":
        """Reference a node by key without upserting it."""
        return cls(node_type, node_key)

    def as_dict(self) -> Dict[str, str]:
        return {"type": self.node_type, "key": self.node_key}


@runtime_checkable
class GraphStore(Protocol):
    """Interface the graph builder and commit batcher rely on."""

    def create_node_schema(self, node_cls: Type[Node]) -> None: ...

    def create_edge_schema(self, *edge_names: str) -> None: ...

    def upsert(self, node: Node) -> NodeRef: ...

    def node_ref(self, node_type: str, node_key: str) -> NodeRef: ...

    def link(self, source: NodeRef, target: NodeRef, edge: str, inverse: str) -> None: ...

    def add_alias(self, node: NodeRef, language: str, text: str, exclusive: bool = False) -> None: ...

    def commit_pending(self) -> int: ...

    def close(self) -> None: ...


class BufferedGraphStore:
    """Schema bookkeeping and the shared pending-mutation buffer."""

    def __init__(self):
        self._node_schemas: Dict[str, str] = {}
        self._edge_schemas: Set[str] = set()
        self._pending: List[Dict[str, Any]] = []
        self._buffer_lock = threading.Lock()
        self._commit_lock = threading.Lock()
        self.commits = 0

    # -- schema -------------------------------------------------------------

    def create_node_schema(self, node_cls: Type[Node]) -> None:
        if not node_cls.node_type or not node_cls.key_field:
            raise GraphStoreError(f"{node_cls.__name__} does not declare a node type and key field")
        self._write_node_schema(node_cls.node_type, node_cls.key_field)
        self._node_schemas[node_cls.node_type] = node_cls.key_field

    def create_edge_schema(self, *edge_names: str) -> None:
        names = [name for name in edge_names if name]
        self._write_edge_schema(names)
        self._edge_schemas.update(names)

    def _write_node_schema(self, node_type: str, key_field: str) -> None:
        raise NotImplementedError

    def _write_edge_schema(self, edge_names: List[str]) -> None:
        raise NotImplementedError

    # -- buffered mutations -------------------------------------------------

    @property
    def pending_count(self) -> int:
        with self._buffer_lock:
            return len(self._pending)

    def _append(self, mutation: Dict[str, Any]) -> None:
        with self._buffer_lock:
            self._pending.append(mutation)

    def _require_node_type(self, node_type: str) -> None:
        if node_type not in self._node_schemas:
            raise GraphStoreError(f"Node type '{node_type}' has no registered schema")

    def upsert(self, node: Node) -> NodeRef:
        """Queue an idempotent create-or-update of *node* by its key."""
        self._require_node_type(node.node_type)
        if not node.key:
            raise GraphStoreError(f"{node.node_type} node without a key")
        self._append({
            "op": "upsert",
            "type": node.node_type,
            "key": node.key,
            "properties": node.properties(),
        })
        return NodeRef(node.node_type, node.key)

    def node_ref(self, node_type: str, node_key: str) -> NodeRef:
        self._require_node_type(node_type)
        return NodeRef.key(node_type, node_key)

    def link(self, source: NodeRef, target: NodeRef, edge: str, inverse: str) -> None:
        """Queue a reciprocal pair: source -edge-> target and target -inverse-> source."""
        for name in (edge, inverse):
            if name not in self._edge_schemas:
                raise GraphStoreError(f"Edge '{name}' has no registered schema")
        self._append({
            "op": "link",
            "source": source.as_dict(),
            "target": target.as_dict(),
            "edge": edge,
            "inverse": inverse,
        })

    def add_alias(self, node: NodeRef, language: str, text: str, exclusive: bool = False) -> None:
        if not text:
            return
        self._append({
            "op": "alias",
            "node": node.as_dict(),
            "language": language,
            "text": text,
            "exclusive": bool(exclusive),
        })

    def commit_pending(self) -> int:
        """Write every queued mutation to the backend; returns how many were written."""
        with self._commit_lock:
            with self._buffer_lock:
                batch, self._pending = self._pending, []
            if batch:
                self._write_batch(batch)
            self.commits += 1
            logger.debug(f"Committed {len(batch)} pending graph mutations")
            return len(batch)

    def _write_batch(self, batch: List[Dict[str, Any]]) -> None:
        raise NotImplementedError

    # -- lifecycle ----------------------------------------------------------

    def close(self) -> None:
        pending = self.pending_count
        if pending:
            logger.warning(f"Closing graph store with {pending} uncommitted mutations")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class SQLiteGraphStore(BufferedGraphStore):
    """Graph store backed by a local SQLite database file."""

    def __init__(self, path: str):
        super().__init__()
        self.path = str(path)
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self._init_database()

    def _init_database(self):
        """Create tables and load any schemas registered by earlier runs."""
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS node_schemas (
                    node_type TEXT PRIMARY KEY,
                    key_field TEXT NOT NULL
                )
            ''')
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS edge_schemas (
                    edge TEXT PRIMARY KEY
                )
            ''')
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS nodes (
                    node_type TEXT NOT NULL,
                    node_key TEXT NOT NULL,
                    properties TEXT NOT NULL DEFAULT '{}',
                    updated_at TEXT DEFAULT (datetime('now')),
                    PRIMARY KEY (node_type, node_key)
                )
            ''')
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS edges (
                    source_type TEXT NOT NULL,
                    source_key TEXT NOT NULL,
                    edge TEXT NOT NULL,
                    target_type TEXT NOT NULL,
                    target_key TEXT NOT NULL,
                    PRIMARY KEY (source_type, source_key, edge, target_type, target_key)
                )
            ''')
            cursor.execute('''
                CREATE INDEX IF NOT EXISTS idx_edges_target
                ON edges(target_type, target_key)
            ''')
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS aliases (
                    node_type TEXT NOT NULL,
                    node_key TEXT NOT NULL,
                    language TEXT NOT NULL,
                    text TEXT NOT NULL,
                    UNIQUE(node_type, node_key, language, text)
                )
            ''')
            cursor.execute('''
                CREATE INDEX IF NOT EXISTS idx_aliases_text
                ON aliases(language, text)
            ''')

            for row in cursor.execute("SELECT node_type, key_field FROM node_schemas"):
                self._node_schemas[row['node_type']] = row['key_field']
            for row in cursor.execute("SELECT edge FROM edge_schemas"):
                self._edge_schemas.add(row['edge'])

    @contextmanager
    def get_connection(self) -> Iterator[sqlite3.Connection]:
        """Context manager for connections with automatic commit/rollback."""
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _write_node_schema(self, node_type: str, key_field: str) -> None:
        with self.get_connection() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO node_schemas (node_type, key_field) VALUES (?, ?)",
                (node_type, key_field),
            )

    def _write_edge_schema(self, edge_names: List[str]) -> None:
        with self.get_connection() as conn:
            conn.executemany(
                "INSERT OR IGNORE INTO edge_schemas (edge) VALUES (?)",
                [(name,) for name in edge_names],
            )

    def _write_batch(self, batch: List[Dict[str, Any]]) -> None:
        """Apply one batch in a single transaction."""
        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()
                for mutation in batch:
                    op = mutation["op"]
                    if op == "upsert":
                        self._apply_upsert(cursor, mutation)
                    elif op == "link":
                        self._apply_link(cursor, mutation)
                    elif op == "alias":
                        self._apply_alias(cursor, mutation)
                    else:
                        raise GraphStoreError(f"Unknown mutation '{op}'")
        except sqlite3.Error as e:
            raise GraphStoreError(f"Failed to commit {len(batch)} mutations to {self.path}: {e}") from e

    def _apply_upsert(self, cursor: sqlite3.Cursor, mutation: Dict[str, Any]) -> None:
        row = cursor.execute(
            "SELECT properties FROM nodes WHERE node_type = ? AND node_key = ?",
            (mutation["type"], mutation["key"]),
        ).fetchone()
        properties = json.loads(row['properties']) if row else {}
        properties.update(mutation["properties"])
        cursor.execute(
            '''
            INSERT INTO nodes (node_type, node_key, properties) VALUES (?, ?, ?)
            ON CONFLICT(node_type, node_key) DO UPDATE SET
                properties = excluded.properties,
                updated_at = datetime('now')
            ''',
            (mutation["type"], mutation["key"], json.dumps(properties)),
        )

    def _apply_link(self, cursor: sqlite3.Cursor, mutation: Dict[str, Any]) -> None:
        source, target = mutation["source"], mutation["target"]
        cursor.executemany(
            '''
            INSERT OR IGNORE INTO edges (source_type, source_key, edge, target_type, target_key)
            VALUES (?, ?, ?, ?, ?)
            ''',
            [
                (source["type"], source["key"], mutation["edge"], target["type"], target["key"]),
                (target["type"], target["key"], mutation["inverse"], source["type"], source["key"]),
            ],
        )

    def _apply_alias(self, cursor: sqlite3.Cursor, mutation: Dict[str, Any]) -> None:
        node = mutation["node"]
        if mutation["exclusive"]:
            cursor.execute(
                '''
                DELETE FROM aliases
                WHERE language = ? AND text = ? AND NOT (node_type = ? AND node_key = ?)
                ''',
                (mutation["language"], mutation["text"], node["type"], node["key"]),
            )
        cursor.execute(
            "INSERT OR IGNORE INTO aliases (node_type, node_key, language, text) VALUES (?, ?, ?, ?)",
            (node["type"], node["key"], mutation["language"], mutation["text"]),
        )

    # -- read helpers (committed data only) ---------------------------------

    def get_node(self, node_type: str, node_key: str) -> Optional[Dict[str, Any]]:
        """Return the node's properties plus its key field, or None."""
        with self.get_connection() as conn:
            row = conn.execute(
                "SELECT properties FROM nodes WHERE node_type = ? AND node_key = ?",
                (node_type, node_key),
            ).fetchone()
        if row is None:
            return None
        node = json.loads(row['properties'])
        node[self._node_schemas.get(node_type, 'key')] = node_key
        return node

    def count_nodes(self, node_type: Optional[str] = None) -> int:
        with self.get_connection() as conn:
            if node_type:
                row = conn.execute("SELECT COUNT(*) FROM nodes WHERE node_type = ?", (node_type,)).fetchone()
            else:
                row = conn.execute("SELECT COUNT(*) FROM nodes").fetchone()
        return int(row[0])

    def count_edges(self, edge: Optional[str] = None) -> int:
        with self.get_connection() as conn:
            if edge:
                row = conn.execute("SELECT COUNT(*) FROM edges WHERE edge = ?", (edge,)).fetchone()
            else:
                row = conn.execute("SELECT COUNT(*) FROM edges").fetchone()
        return int(row[0])

    def has_edge(self, source: NodeRef, edge: str, target: NodeRef) -> bool:
        with self.get_connection() as conn:
            row = conn.execute(
                '''
                SELECT 1 FROM edges
                WHERE source_type = ? AND source_key = ? AND edge = ? AND target_type = ? AND target_key = ?
                ''',
                (source.node_type, source.node_key, edge, target.node_type, target.node_key),
            ).fetchone()
        return row is not None

    def neighbors(self, node: NodeRef, edge: str) -> List[NodeRef]:
        with self.get_connection() as conn:
            rows = conn.execute(
                '''
                SELECT target_type, target_key FROM edges
                WHERE source_type = ? AND source_key = ? AND edge = ?
                ORDER BY target_type, target_key
                ''',
                (node.node_type, node.node_key, edge),
            ).fetchall()
        return [NodeRef(row['target_type'], row['target_key']) for row in rows]

    def iter_edges(self) -> Iterator[sqlite3.Row]:
        with self.get_connection() as conn:
            rows = conn.execute(
                "SELECT source_type, source_key, edge, target_type, target_key FROM edges"
            ).fetchall()
        yield from rows

    def aliases_for(self, node: NodeRef, language: Optional[str] = None) -> List[str]:
        query = "SELECT text FROM aliases WHERE node_type = ? AND node_key = ?"
        params: List[Any] = [node.node_type, node.node_key]
        if language:
            query += " AND language = ?"
            params.append(language)
        with self.get_connection() as conn:
            rows = conn.execute(query + " ORDER BY rowid", params).fetchall()
        return [row['text'] for row in rows]


class HttpGraphStore(BufferedGraphStore):
    """Graph store on a remote server that accepts JSON mutation batches."""

    def __init__(self, server: str, token: str, graph_name: str, client: Optional[RetryableHTTPClient] = None):
        super().__init__()
        self.server = server.rstrip('/')
        self.graph_name = graph_name
        self._headers = {"Authorization": f"Bearer {token}"}
        self.client = client or RetryableHTTPClient(timeout=600)

    @property
    def base_url(self) -> str:
        return f"{self.server}/graphs/{self.graph_name}"

    def _post(self, path: str, payload: Dict[str, Any]) -> None:
        url = f"{self.base_url}/{path}"
        try:
            self.client.post_json(url, payload, headers=self._headers)
        except requests.RequestException as e:
            raise GraphStoreError(f"Graph server rejected POST {url}: {e}") from e

    def _write_node_schema(self, node_type: str, key_field: str) -> None:
        self._post("schema", {"nodes": [{"type": node_type, "key": key_field}]})

    def _write_edge_schema(self, edge_names: List[str]) -> None:
        self._post("schema", {"edges": edge_names})

    def _write_batch(self, batch: List[Dict[str, Any]]) -> None:
        self._post("mutations", {"mutations": batch})

    def close(self) -> None:
        super().close()
        self.client.close()


def connect(server: str, token: str, graph_name: str) -> BufferedGraphStore:
    """Open the store addressed by *server*.

    ``http://`` and ``https://`` addresses select the remote store; ``sqlite:///path``
    or a plain filesystem path selects a local SQLite file (the token is unused).
    """
    if server.startswith(("http://", "https://")):
        logger.info(f"Connecting to graph server {server} (graph '{graph_name}')")
        return HttpGraphStore(server, token, graph_name)

    path = server[len("sqlite:///"):] if server.startswith("sqlite:///") else server
    if not path:
        path = f"{graph_name}.db"
    resolved = resolve_data_file(path, ensure_parent=True)
    logger.info(f"Opening local graph store {resolved} (graph '{graph_name}')")
    try:
        return SQLiteGraphStore(str(resolved))
    except sqlite3.Error as e:
        raise GraphStoreError(f"Cannot open graph store at {resolved}: {e}") from e


__all__ = [
    "GraphStoreError",
    "NodeRef",
    "GraphStore",
    "BufferedGraphStore",
    "SQLiteGraphStore",
    "HttpGraphStore",
    "connect",
]
