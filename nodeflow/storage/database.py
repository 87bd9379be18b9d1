"""Database connection and SQLAlchemy-backed workflow store."""

from typing import List
from sqlalchemy import create_engine, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from ..core.exceptions import StorageError, WorkflowAlreadyExistsError, WorkflowNotFoundError
from ..core.logging import get_logger
from ..models.core import Workflow
from .base import WorkflowStore, prepare_new_workflow, prepare_updated_workflow
from .rwlock import ReadWriteLock

logger = get_logger(__name__)

# Base class for all database models
Base = declarative_base()


def create_database_engine(database_url: str, echo: bool = False) -> Engine:
    """Create a database engine with settings suited to the backend."""
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=echo
        )
    return create_engine(database_url, echo=echo)


class DatabaseWorkflowStore(WorkflowStore):
    """Workflow store persisting definitions through SQLAlchemy."""

    def __init__(self, engine: Engine):
        """Bind the store to an engine and create missing tables."""
        from .models import WorkflowModel

        self._model = WorkflowModel
        self._engine = engine
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
        self._lock = ReadWriteLock()
        Base.metadata.create_all(bind=engine)

    @classmethod
    def from_url(cls, database_url: str, echo: bool = False) -> "DatabaseWorkflowStore":
        return cls(create_database_engine(database_url, echo=echo))

    def _session(self) -> Session:
        return self._session_factory()

    def _to_workflow(self, row) -> Workflow:
        definition = row.definition or {}
        return Workflow(
            id=row.id,
            name=row.name or "",
            description=row.description or "",
            nodes=definition.get("nodes", []),
            connections=definition.get("connections", []),
            status=row.status,
            created_at=row.created_at,
            updated_at=row.updated_at
        )

    @staticmethod
    def _definition(workflow: Workflow) -> dict:
        return workflow.model_dump(mode="json", include={"nodes", "connections"})

    def create(self, workflow: Workflow) -> Workflow:
        stored = prepare_new_workflow(workflow)
        with self._lock.write_locked():
            session = self._session()
            try:
                if session.get(self._model, stored.id) is not None:
                    raise WorkflowAlreadyExistsError(stored.id, operation="create")

                session.add(self._model(
                    id=stored.id,
                    name=stored.name,
                    description=stored.description,
                    status=stored.status.value,
                    definition=self._definition(stored),
                    created_at=stored.created_at,
                    updated_at=stored.updated_at
                ))
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(f"Database error while creating workflow: {str(e)}")
                raise StorageError(f"Failed to store workflow: {str(e)}", operation="create")
            finally:
                session.close()

        logger.info(f"Created workflow '{stored.name}' with ID: {stored.id}")
        return stored

    def get(self, workflow_id: str) -> Workflow:
        with self._lock.read_locked():
            session = self._session()
            try:
                row = session.get(self._model, workflow_id)
                if row is None:
                    raise WorkflowNotFoundError(workflow_id, operation="get")
                return self._to_workflow(row)
            except SQLAlchemyError as e:
                logger.error(f"Database error while retrieving workflow: {str(e)}")
                raise StorageError(f"Failed to retrieve workflow: {str(e)}", operation="get")
            finally:
                session.close()

    def update(self, workflow: Workflow) -> Workflow:
        with self._lock.write_locked():
            session = self._session()
            try:
                row = session.get(self._model, workflow.id)
                if row is None:
                    raise WorkflowNotFoundError(workflow.id, operation="update")

                stored = prepare_updated_workflow(workflow, self._to_workflow(row))
                row.name = stored.name
                row.description = stored.description
                row.status = stored.status.value
                row.definition = self._definition(stored)
                row.updated_at = stored.updated_at
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(f"Database error while updating workflow: {str(e)}")
                raise StorageError(f"Failed to update workflow: {str(e)}", operation="update")
            finally:
                session.close()

        logger.info(f"Updated workflow {stored.id}")
        return stored

    def delete(self, workflow_id: str) -> None:
        with self._lock.write_locked():
            session = self._session()
            try:
                row = session.get(self._model, workflow_id)
                if row is None:
                    raise WorkflowNotFoundError(workflow_id, operation="delete")
                session.delete(row)
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(f"Database error while deleting workflow: {str(e)}")
                raise StorageError(f"Failed to delete workflow: {str(e)}", operation="delete")
            finally:
                session.close()

        logger.info(f"Deleted workflow {workflow_id}")

    def list(self) -> List[Workflow]:
        with self._lock.read_locked():
            session = self._session()
            try:
                rows = session.query(self._model).order_by(self._model.created_at).all()
                return [self._to_workflow(row) for row in rows]
            except SQLAlchemyError as e:
                logger.error(f"Database error while listing workflows: {str(e)}")
                raise StorageError(f"Failed to list workflows: {str(e)}", operation="list")
            finally:
                session.close()

    def close(self) -> None:
        """Release pooled connections."""
        self._engine.dispose()
