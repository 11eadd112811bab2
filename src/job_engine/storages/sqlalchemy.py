from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any, AsyncIterator, Dict, List, Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    Uuid,
    delete as sql_delete,
    update as sql_update,
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.future import select
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from job_engine.domain.execution import JobExecution, NewJobExecution
from job_engine.domain.job import JobStatus, NewScheduledJob, ScheduledJob, UpdateScheduledJob, utc_now
from job_engine.errors import AlreadyExistsError, NotFoundError, StorageError

Base = declarative_base()


class ScheduledJobModel(Base):
    __tablename__ = 'scheduled_jobs'

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_name = Column(String(255), nullable=False, unique=True)
    job_type = Column(String(100), nullable=False)
    cron_expression = Column(String(255), nullable=False)
    enabled = Column(Boolean, nullable=False, default=True, index=True)

    allow_concurrent = Column(Boolean, nullable=False, default=False)
    max_concurrent = Column(Integer)

    max_retries = Column(Integer, nullable=False, default=3)
    retry_delay_seconds = Column(Integer, nullable=False, default=60)
    retry_backoff_multiplier = Column(Float, nullable=False, default=2.0)

    timeout_seconds = Column(Integer, nullable=False, default=300)

    payload = Column(JSON)
    description = Column(Text)

    last_run_at = Column(DateTime(timezone=True))
    last_run_status = Column(String(16))
    next_run_at = Column(DateTime(timezone=True))

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    created_by = Column(String(255))


class JobExecutionModel(Base):
    __tablename__ = 'job_executions'

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    job_id = Column(Integer, ForeignKey('scheduled_jobs.id', ondelete="CASCADE"), nullable=False, index=True)
    job_name = Column(String(255), nullable=False)
    execution_id = Column(Uuid, nullable=False)

    started_at = Column(DateTime(timezone=True), nullable=False, index=True)
    completed_at = Column(DateTime(timezone=True))
    duration_ms = Column(BigInteger)

    status = Column(String(16), nullable=False, index=True)
    retry_attempt = Column(Integer, nullable=False, default=0)
    error_message = Column(Text)
    error_details = Column(JSON)

    result = Column(JSON)


class Database:
    """
    Owns the async engine and session factory. This is the long lived handle
    that is shared by the storages and handed to tasks through JobContext.
    """
    def __init__(self, db_url: str, **engine_kwargs: Any):
        self.engine = create_async_engine(db_url, **engine_kwargs)
        self.async_session = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    async def create_tables(self):
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self):
        await self.engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with self.async_session() as session:
            try:
                yield session
            except SQLAlchemyError as e:
                await session.rollback()
                raise StorageError(str(e)) from e


class InMemoryDatabase(Database):
    def __init__(self):
        super().__init__("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)


class SqlAlchemyJobStorage:
    def __init__(self, database: Database):
        self.database = database

    async def create(self, job: NewScheduledJob) -> ScheduledJob:
        now = utc_now()
        async with self.database.session() as session:
            db_job = ScheduledJobModel(
                **job.model_dump(),
                created_at=now,
                updated_at=now,
            )
            session.add(db_job)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise AlreadyExistsError("Job", "name", job.job_name) from e
            return self._db_to_job(db_job)

    async def get_by_id(self, job_id: int) -> ScheduledJob:
        async with self.database.session() as session:
            result = await session.execute(select(ScheduledJobModel).filter_by(id=job_id))
            db_job = result.scalar_one_or_none()
            if db_job is None:
                raise NotFoundError("Job", "id", job_id)
            return self._db_to_job(db_job)

    async def get_by_name(self, job_name: str) -> ScheduledJob:
        async with self.database.session() as session:
            result = await session.execute(select(ScheduledJobModel).filter_by(job_name=job_name))
            db_job = result.scalar_one_or_none()
            if db_job is None:
                raise NotFoundError("Job", "name", job_name)
            return self._db_to_job(db_job)

    async def get_enabled_jobs(self) -> List[ScheduledJob]:
        async with self.database.session() as session:
            result = await session.execute(
                select(ScheduledJobModel)
                .filter_by(enabled=True)
                .order_by(ScheduledJobModel.id)
            )
            return [self._db_to_job(db_job) for db_job in result.scalars()]

    async def update(self, job_id: int, patch: UpdateScheduledJob) -> ScheduledJob:
        async with self.database.session() as session:
            result = await session.execute(select(ScheduledJobModel).filter_by(id=job_id))
            db_job = result.scalar_one_or_none()
            if db_job is None:
                raise NotFoundError("Job", "id", job_id)
            for field, value in patch.changes().items():
                setattr(db_job, field, value)
            db_job.updated_at = utc_now()
            await session.commit()
            return self._db_to_job(db_job)

    async def delete(self, job_id: int) -> None:
        async with self.database.session() as session:
            # SQLite does not enforce ON DELETE CASCADE unless foreign keys are switched on
            await session.execute(sql_delete(JobExecutionModel).where(JobExecutionModel.job_id == job_id))
            result = await session.execute(sql_delete(ScheduledJobModel).where(ScheduledJobModel.id == job_id))
            if result.rowcount == 0:
                await session.rollback()
                raise NotFoundError("Job", "id", job_id)
            await session.commit()

    async def update_last_run(self, job_id: int, status: JobStatus) -> None:
        async with self.database.session() as session:
            result = await session.execute(
                sql_update(ScheduledJobModel)
                .where(ScheduledJobModel.id == job_id)
                .values(last_run_at=utc_now(), last_run_status=status.value)
            )
            if result.rowcount == 0:
                await session.rollback()
                raise NotFoundError("Job", "id", job_id)
            await session.commit()

    def _db_to_job(self, db_job: ScheduledJobModel) -> ScheduledJob:
        return ScheduledJob(
            id=db_job.id,
            job_name=db_job.job_name,
            job_type=db_job.job_type,
            cron_expression=db_job.cron_expression,
            enabled=db_job.enabled,
            allow_concurrent=db_job.allow_concurrent,
            max_concurrent=db_job.max_concurrent,
            max_retries=db_job.max_retries,
            retry_delay_seconds=db_job.retry_delay_seconds,
            retry_backoff_multiplier=db_job.retry_backoff_multiplier,
            timeout_seconds=db_job.timeout_seconds,
            payload=db_job.payload,
            description=db_job.description,
            last_run_at=db_job.last_run_at,
            last_run_status=JobStatus(db_job.last_run_status) if db_job.last_run_status else None,
            next_run_at=db_job.next_run_at,
            created_at=db_job.created_at,
            updated_at=db_job.updated_at,
            created_by=db_job.created_by,
        )


class SqlAlchemyExecutionStorage:
    def __init__(self, database: Database):
        self.database = database

    async def create(self, execution: NewJobExecution) -> JobExecution:
        async with self.database.session() as session:
            db_execution = JobExecutionModel(
                job_id=execution.job_id,
                job_name=execution.job_name,
                execution_id=execution.execution_id,
                status=execution.status.value,
                retry_attempt=execution.retry_attempt,
                started_at=utc_now(),
            )
            session.add(db_execution)
            await session.commit()
            return self._db_to_execution(db_execution)

    async def complete(
        self,
        execution_id: int,
        status: JobStatus,
        duration_ms: int,
        error_message: Optional[str] = None,
        result: Optional[Any] = None,
        error_details: Optional[Dict[str, Any]] = None,
    ) -> None:
        async with self.database.session() as session:
            outcome = await session.execute(
                sql_update(JobExecutionModel)
                .where(JobExecutionModel.id == execution_id)
                .values(
                    completed_at=utc_now(),
                    duration_ms=duration_ms,
                    status=status.value,
                    error_message=error_message,
                    error_details=error_details,
                    result=result,
                )
            )
            if outcome.rowcount == 0:
                await session.rollback()
                raise NotFoundError("JobExecution", "id", execution_id)
            await session.commit()

    async def get(self, execution_id: int) -> JobExecution:
        async with self.database.session() as session:
            result = await session.execute(select(JobExecutionModel).filter_by(id=execution_id))
            db_execution = result.scalar_one_or_none()
            if db_execution is None:
                raise NotFoundError("JobExecution", "id", execution_id)
            return self._db_to_execution(db_execution)

    async def list_by_job(self, job_id: int, limit: int = 20, offset: int = 0) -> List[JobExecution]:
        async with self.database.session() as session:
            result = await session.execute(
                select(JobExecutionModel)
                .filter_by(job_id=job_id)
                .order_by(JobExecutionModel.started_at.desc(), JobExecutionModel.id.desc())
                .offset(offset)
                .limit(limit)
            )
            return [self._db_to_execution(db_execution) for db_execution in result.scalars()]

    async def cleanup_old_executions(self, retention_days: int) -> int:
        cutoff = utc_now() - timedelta(days=retention_days)
        async with self.database.session() as session:
            result = await session.execute(
                sql_delete(JobExecutionModel).where(
                    JobExecutionModel.started_at < cutoff,
                    JobExecutionModel.status != JobStatus.RUNNING.value,
                )
            )
            await session.commit()
            return result.rowcount

    def _db_to_execution(self, db_execution: JobExecutionModel) -> JobExecution:
        return JobExecution(
            id=db_execution.id,
            job_id=db_execution.job_id,
            job_name=db_execution.job_name,
            execution_id=db_execution.execution_id,
            status=JobStatus(db_execution.status),
            retry_attempt=db_execution.retry_attempt,
            started_at=db_execution.started_at,
            completed_at=db_execution.completed_at,
            duration_ms=db_execution.duration_ms,
            error_message=db_execution.error_message,
            error_details=db_execution.error_details,
            result=db_execution.result,
        )
