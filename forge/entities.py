# forge/entities.py
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Index, String, text
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

from typing import TypeAlias
SeedValue: TypeAlias = str

Base = declarative_base()


class DemoSeed(Base):
    __tablename__ = "demo_seed_pool"

    # 64-char hex, 256 bits of randomness
    seed: Mapped[SeedValue] = mapped_column(String(64), primary_key=True)

    used: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    # caller supplied, untrusted
    used_by: Mapped[str | None] = mapped_column(String(255))

    __table_args__ = (
        Index("ix_demo_seed_pool_used_seed", "used", "seed"),
    )

    def __repr__(self) -> str:
        return f"DemoSeed(seed={self.seed[:12]}..., used={self.used})"


class DemoLogoStyle(Base):
    __tablename__ = "demo_logo_style"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # the uniqueness constraint is what settles concurrent first-time creation
    seed: Mapped[SeedValue] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
        index=True,
    )

    palette: Mapped[str] = mapped_column(String(32), nullable=False)
    gradient: Mapped[str] = mapped_column(String(32), nullable=False)
    glow: Mapped[str] = mapped_column(String(32), nullable=False)
    chrome: Mapped[str] = mapped_column(String(32), nullable=False)
    bloom: Mapped[str] = mapped_column(String(32), nullable=False)
    texture: Mapped[str] = mapped_column(String(32), nullable=False)
    lighting: Mapped[str] = mapped_column(String(32), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
