"""BuildState database tables: run metadata, per-document records, and index page records"""

from typing import List

from sqlalchemy import Column, JSON, String, Text
from sqlmodel import Field, SQLModel


class StateMeta(SQLModel, table=True):
    """Key-value stamp of the run that wrote the state (schema/renderer/template versions)"""
    __tablename__ = "state_meta"
    key: str = Field(primary_key=True)
    value: str = Field(..., sa_column=Column(Text, nullable=False))


class DocumentRecord(SQLModel, table=True):
    """Last successful render of a document"""
    __tablename__ = "document_records"
    slug: str = Field(primary_key=True)
    source_path: str = Field(..., sa_column=Column(Text, nullable=False))
    content_hash: str = Field(..., sa_column=Column(String(64), nullable=False))
    output_hash: str = Field(..., sa_column=Column(String(64), nullable=False))
    pages: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))


class PageRecord(SQLModel, table=True):
    """Last rendered output of an index page (listing, tag, or series page)"""
    __tablename__ = "page_records"
    key: str = Field(primary_key=True)
    output_hash: str = Field(..., sa_column=Column(String(64), nullable=False))
