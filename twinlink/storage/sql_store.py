"""
SQL Document Store - SQLAlchemy-backed persistence.

This module stores conversation and session documents in two tables:
- documents: one row per (collection, key) with a JSON body and a version
- document_members: member index used by participant lookups

Optimistic concurrency is implemented with a conditional UPDATE on the
version column. SQLAlchemy is synchronous, so each call runs in a worker
thread via asyncio.to_thread and never blocks the event loop.
"""
import asyncio
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Generator, Optional, Sequence

from sqlalchemy import JSON, Column, DateTime, Integer, String, create_engine, delete, select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from twinlink.core.exceptions import StoreUnavailable, WriteConflict
from twinlink.core.logging_config import get_logger
from twinlink.storage.documents import DocumentRead, MemberScan, StoredDocument, WriteReceipt

logger = get_logger(__name__)

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentRecord(Base):
    """
    A stored conversation or session document.

    ``version`` starts at 1 and is incremented by every successful write;
    its string form is the etag handed to callers.
    """
    __tablename__ = "documents"

    collection = Column(String(32), primary_key=True)
    key = Column(String(300), primary_key=True)
    body = Column(JSON, nullable=False)
    version = Column(Integer, nullable=False, default=1)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class DocumentMember(Base):
    """Participant index row: (collection, key) has member ``member_id``."""
    __tablename__ = "document_members"

    collection = Column(String(32), primary_key=True)
    key = Column(String(300), primary_key=True)
    member_id = Column(String(128), primary_key=True, index=True)


class SQLDocumentStore:
    """
    Document store on top of any SQLAlchemy-supported database.

    Each statement counts as one cost unit.

    Example:
        >>> store = SQLDocumentStore("sqlite:///./twinlink.db")
        >>> store.init_tables()
        >>> read = await store.get("conversations", "alice_bob")
    """

    STATEMENT_COST = 1.0

    def __init__(self, database_url: str):
        """
        Initialize database engine.

        Args:
            database_url: SQLAlchemy connection URL
        """
        engine_kwargs: Dict[str, Any] = {"pool_pre_ping": True, "echo": False}

        if database_url.startswith("sqlite"):
            # Worker threads share the connection
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs["pool_size"] = 5
            engine_kwargs["max_overflow"] = 10

        self.engine = create_engine(database_url, **engine_kwargs)
        self._session_factory = sessionmaker(
            bind=self.engine,
            autocommit=False,
            autoflush=False,
        )

        logger.info(
            f"SQL document store initialized: "
            f"{database_url.split('@')[-1] if '@' in database_url else database_url.split(':')[0]}"
        )

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """
        Get a database session with automatic cleanup.

        Transactions are rolled back on error, committed on success.
        """
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise
        finally:
            session.close()

    def init_tables(self) -> None:
        """Create the document tables if they don't exist."""
        Base.metadata.create_all(self.engine)
        logger.info("Document tables initialized")

    def drop_tables(self) -> None:
        """Drop the document tables (tests and local development only)."""
        Base.metadata.drop_all(self.engine)
        logger.warning("Document tables dropped")

    # =========================================================================
    # Async interface
    # =========================================================================

    async def get(self, collection: str, key: str) -> DocumentRead:
        return await asyncio.to_thread(self._get, collection, key)

    async def put(
        self,
        collection: str,
        key: str,
        body: Dict[str, Any],
        etag: Optional[str],
        members: Sequence[str] = ()
    ) -> WriteReceipt:
        return await asyncio.to_thread(self._put, collection, key, body, etag, list(members))

    async def find_by_member(self, collection: str, member_id: str) -> MemberScan:
        return await asyncio.to_thread(self._find_by_member, collection, member_id)

    async def check_connection(self) -> bool:
        return await asyncio.to_thread(self._check_connection)

    def close(self) -> None:
        """Close all connections in the pool."""
        self.engine.dispose()
        logger.info("Database connections closed")

    # =========================================================================
    # Blocking implementations
    # =========================================================================

    def _get(self, collection: str, key: str) -> DocumentRead:
        try:
            with self.get_session() as session:
                record = session.get(DocumentRecord, (collection, key))
                if record is None:
                    return DocumentRead(document=None, cost=self.STATEMENT_COST)
                return DocumentRead(
                    document=StoredDocument(key=key, body=dict(record.body), etag=str(record.version)),
                    cost=self.STATEMENT_COST,
                )
        except SQLAlchemyError as e:
            logger.error(f"Read failed for {collection}/{key}: {e}")
            raise StoreUnavailable(f"Could not read {collection}/{key}") from e

    def _put(
        self,
        collection: str,
        key: str,
        body: Dict[str, Any],
        etag: Optional[str],
        members: Sequence[str]
    ) -> WriteReceipt:
        statements = 0
        try:
            with self.get_session() as session:
                if etag is None:
                    session.add(DocumentRecord(
                        collection=collection,
                        key=key,
                        body=body,
                        version=1,
                        updated_at=_utcnow(),
                    ))
                    session.flush()
                    new_version = 1
                    statements += 1
                else:
                    expected = int(etag)
                    result = session.execute(
                        update(DocumentRecord)
                        .where(
                            DocumentRecord.collection == collection,
                            DocumentRecord.key == key,
                            DocumentRecord.version == expected,
                        )
                        .values(body=body, version=expected + 1, updated_at=_utcnow())
                    )
                    statements += 1
                    if result.rowcount != 1:
                        raise WriteConflict(collection, key)
                    new_version = expected + 1

                session.execute(
                    delete(DocumentMember).where(
                        DocumentMember.collection == collection,
                        DocumentMember.key == key,
                    )
                )
                statements += 1
                for member_id in sorted(set(members)):
                    session.add(DocumentMember(collection=collection, key=key, member_id=member_id))
                if members:
                    statements += 1

            return WriteReceipt(etag=str(new_version), cost=statements * self.STATEMENT_COST)

        except IntegrityError as e:
            # Another writer created the same key first
            raise WriteConflict(collection, key) from e
        except WriteConflict:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Write failed for {collection}/{key}: {e}")
            raise StoreUnavailable(f"Could not write {collection}/{key}") from e

    def _find_by_member(self, collection: str, member_id: str) -> MemberScan:
        try:
            with self.get_session() as session:
                rows = session.execute(
                    select(DocumentRecord)
                    .join(
                        DocumentMember,
                        (DocumentMember.collection == DocumentRecord.collection)
                        & (DocumentMember.key == DocumentRecord.key),
                    )
                    .where(
                        DocumentMember.collection == collection,
                        DocumentMember.member_id == member_id,
                    )
                ).scalars().all()

                return MemberScan(
                    documents=[
                        StoredDocument(key=row.key, body=dict(row.body), etag=str(row.version))
                        for row in rows
                    ],
                    cost=self.STATEMENT_COST,
                )
        except SQLAlchemyError as e:
            logger.error(f"Member lookup failed for {collection}/{member_id}: {e}")
            raise StoreUnavailable(f"Could not list {collection} for {member_id}") from e

    def _check_connection(self) -> bool:
        try:
            with self.get_session() as session:
                session.execute(text("SELECT 1"))
            logger.debug("Database connection check: OK")
            return True
        except SQLAlchemyError as e:
            logger.error(f"Database connection check failed: {e}")
            return False
