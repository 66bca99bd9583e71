"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/schema.py
SQLAlchemy table definitions for the persistent index.
"""

from sqlalchemy import Column, DateTime, Float, Index, Integer, String, func
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class FileRow(Base):
    """One indexed file. Hash columns are NULL until computed for the current size/mtime."""

    __tablename__ = "files"

    id = Column(Integer, primary_key=True, autoincrement=True)
    path = Column(String, nullable=False, unique=True)
    size = Column(Integer, nullable=False)
    mtime = Column(Float, nullable=False)
    partial_hash = Column(String, nullable=True)
    full_hash = Column(String, nullable=True)
    created_at = Column(DateTime, server_default=func.current_timestamp())

    __table_args__ = (
        Index("idx_files_full_hash", "full_hash"),
        Index("idx_files_partial_hash", "partial_hash"),
        Index("idx_files_size", "size"),
    )

    def __repr__(self) -> str:
        return f"<FileRow {self.path}>"


class HistoryRow(Base):
    """A quarantine move that has not been undone yet."""

    __tablename__ = "history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    original_path = Column(String, nullable=False)
    moved_path = Column(String, nullable=False)
    timestamp = Column(DateTime, server_default=func.current_timestamp())

    def __repr__(self) -> str:
        return f"<HistoryRow {self.original_path} -> {self.moved_path}>"


class ExcludedFolderRow(Base):
    __tablename__ = "excluded_folders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    path = Column(String, nullable=False, unique=True)

    def __repr__(self) -> str:
        return f"<ExcludedFolderRow {self.path}>"
