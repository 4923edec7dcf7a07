"""SQLAlchemy-backed project and report stores."""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    exists,
    select,
)
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship, selectinload

from report_engine.config.settings import Settings
from report_engine.models.schemas import (
    Competitor,
    Product,
    Project,
    Report,
    ReportMetadata,
    ReportSection,
    ReportStatus,
    ReportVersion,
    Snapshot,
    new_id,
)
from report_engine.services.report_store import ProjectStore, ReportStore
from report_engine.utils.logger import get_logger
from report_engine.utils.retry import NetworkError

logger = get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


# =============================================================================
# Tables
# =============================================================================

class ProjectRow(Base):
    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    product: Mapped[Optional["ProductRow"]] = relationship(
        back_populates="project", uselist=False, cascade="all, delete-orphan"
    )
    competitors: Mapped[list["CompetitorRow"]] = relationship(
        back_populates="project",
        order_by="CompetitorRow.position",
        cascade="all, delete-orphan",
    )


class ProductRow(Base):
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    project_id: Mapped[str] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), unique=True, index=True
    )
    name: Mapped[str] = mapped_column(String(255))
    website: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    project: Mapped[ProjectRow] = relationship(back_populates="product")


class CompetitorRow(Base):
    __tablename__ = "competitors"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    project_id: Mapped[str] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), index=True
    )
    position: Mapped[int] = mapped_column(Integer, default=0)
    name: Mapped[str] = mapped_column(String(255))
    website: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    project: Mapped[ProjectRow] = relationship(back_populates="competitors")
    snapshots: Mapped[list["SnapshotRow"]] = relationship(
        back_populates="competitor",
        order_by="desc(SnapshotRow.created_at)",
        cascade="all, delete-orphan",
    )


class SnapshotRow(Base):
    __tablename__ = "snapshots"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    competitor_id: Mapped[str] = mapped_column(
        ForeignKey("competitors.id", ondelete="CASCADE"), index=True
    )
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

    competitor: Mapped[CompetitorRow] = relationship(back_populates="snapshots")


class ReportRow(Base):
    __tablename__ = "reports"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    project_id: Mapped[str] = mapped_column(String(64), index=True)
    title: Mapped[str] = mapped_column(String(300))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    content: Mapped[str] = mapped_column(Text, default="")
    format: Mapped[str] = mapped_column(String(20), default="markdown")
    status: Mapped[str] = mapped_column(String(20), index=True)
    # "metadata" is reserved on declarative classes
    report_metadata: Mapped[dict[str, Any]] = mapped_column("metadata", JSON)
    sections: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime, index=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)


class ReportVersionRow(Base):
    __tablename__ = "report_versions"
    __table_args__ = (UniqueConstraint("report_id", "version", name="uq_report_version"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    report_id: Mapped[str] = mapped_column(
        ForeignKey("reports.id", ondelete="CASCADE"), index=True
    )
    version: Mapped[int] = mapped_column(Integer)
    content: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON(none_as_null=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime)


# =============================================================================
# Engine Helpers
# =============================================================================

def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    """Create the async engine for the configured database URL."""
    return create_async_engine(settings.database_url, echo=settings.debug)


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_models(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# =============================================================================
# Row <-> Model Conversion
# =============================================================================

def _project_from_row(row: ProjectRow) -> Project:
    product = row.product
    return Project(
        id=row.id,
        name=row.name,
        created_at=row.created_at,
        product=Product(
            name=product.name if product else row.name or "Unknown Product",
            website=product.website if product else None,
            description=product.description if product else None,
        ),
        competitors=[
            Competitor(
                id=c.id,
                name=c.name,
                website=c.website,
                snapshots=[
                    Snapshot(id=s.id, content=s.content, url=s.url, created_at=s.created_at)
                    for s in c.snapshots
                ],
            )
            for c in row.competitors
        ],
    )


def _report_from_row(row: ReportRow) -> Report:
    return Report(
        id=row.id,
        project_id=row.project_id,
        title=row.title,
        description=row.description,
        content=row.content,
        format=row.format,
        status=row.status,
        metadata=ReportMetadata.model_validate(row.report_metadata),
        sections=[ReportSection.model_validate(s) for s in row.sections or []],
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _version_from_row(row: ReportVersionRow) -> ReportVersion:
    return ReportVersion(
        id=row.id,
        report_id=row.report_id,
        version=row.version,
        content=row.content,
        created_at=row.created_at,
    )


# =============================================================================
# Stores
# =============================================================================

class SQLProjectStore(ProjectStore):
    """Projects, products, competitors and snapshots in a relational database."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    async def get_project(self, project_id: str) -> Optional[Project]:
        stmt = (
            select(ProjectRow)
            .where(ProjectRow.id == project_id)
            .options(
                selectinload(ProjectRow.product),
                selectinload(ProjectRow.competitors).selectinload(CompetitorRow.snapshots),
            )
        )
        try:
            async with self.session_maker() as session:
                row = (await session.execute(stmt)).scalar_one_or_none()
        except OperationalError as e:
            raise NetworkError(f"Project store unavailable: {e}") from e

        return _project_from_row(row) if row else None

    async def save_project(self, project: Project) -> None:
        """Insert a project with its product, competitors and snapshots."""
        row = ProjectRow(
            id=project.id,
            name=project.name,
            created_at=project.created_at,
            product=ProductRow(
                name=project.product.name,
                website=project.product.website,
                description=project.product.description,
            ),
            competitors=[
                CompetitorRow(
                    id=c.id,
                    position=position,
                    name=c.name,
                    website=c.website,
                    snapshots=[
                        SnapshotRow(id=s.id, content=s.content, url=s.url, created_at=s.created_at)
                        for s in c.snapshots
                    ],
                )
                for position, c in enumerate(project.competitors)
            ],
        )
        async with self.session_maker() as session:
            session.add(row)
            await session.commit()


class SQLReportStore(ReportStore):
    """
    Reports and versions in a relational database.

    Each write commits on its own, so a crash between create_report and
    create_report_version leaves a report without versions.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    async def create_report(self, report: Report) -> Report:
        row = ReportRow(
            id=report.id,
            project_id=report.project_id,
            title=report.title,
            description=report.description,
            content=report.content,
            format=report.format,
            status=ReportStatus(report.status).value,
            report_metadata=report.metadata.model_dump(mode="json"),
            sections=[s.model_dump(mode="json") for s in report.sections],
            created_at=report.created_at,
            updated_at=report.updated_at,
        )
        async with self.session_maker() as session:
            session.add(row)
            await session.commit()
        logger.debug("Report row created", report_id=report.id)
        return report

    async def create_report_version(self, version: ReportVersion) -> ReportVersion:
        row = ReportVersionRow(
            id=version.id,
            report_id=version.report_id,
            version=version.version,
            content=version.content,
            created_at=version.created_at,
        )
        async with self.session_maker() as session:
            session.add(row)
            await session.commit()
        logger.debug("Report version row created", report_id=version.report_id, version=version.version)
        return version

    async def get_report(self, report_id: str) -> Optional[Report]:
        async with self.session_maker() as session:
            row = await session.get(ReportRow, report_id)
        return _report_from_row(row) if row else None

    async def list_report_versions(self, report_id: str) -> list[ReportVersion]:
        stmt = (
            select(ReportVersionRow)
            .where(ReportVersionRow.report_id == report_id)
            .order_by(ReportVersionRow.version)
        )
        async with self.session_maker() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [_version_from_row(r) for r in rows]

    async def list_reports(self, project_id: Optional[str] = None) -> list[Report]:
        stmt = select(ReportRow).order_by(ReportRow.created_at.desc())
        if project_id is not None:
            stmt = stmt.where(ReportRow.project_id == project_id)
        async with self.session_maker() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [_report_from_row(r) for r in rows]

    async def find_completed_reports_without_versions(
        self,
        project_id: Optional[str] = None,
    ) -> list[Report]:
        has_versions = exists().where(ReportVersionRow.report_id == ReportRow.id)
        stmt = (
            select(ReportRow)
            .where(ReportRow.status == ReportStatus.COMPLETED.value, ~has_versions)
            .order_by(ReportRow.created_at.desc())
        )
        if project_id is not None:
            stmt = stmt.where(ReportRow.project_id == project_id)
        async with self.session_maker() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [_report_from_row(r) for r in rows]


__all__ = [
    "Base",
    "SQLProjectStore",
    "SQLReportStore",
    "create_engine_from_settings",
    "create_session_maker",
    "init_models",
]
