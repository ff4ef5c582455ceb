# backend/db.py

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, Text, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()


class ContractNote(Base):
    __tablename__ = "contract_notes"
    id = Column(Text, primary_key=True)
    user_id = Column(Text, nullable=False, index=True)
    file_name = Column(Text, nullable=False)
    upload_date = Column(DateTime, default=datetime.utcnow, index=True)
    gross_pnl = Column(Float, nullable=False, default=0)
    net_pnl = Column(Float, nullable=False, default=0)
    total_charges = Column(Float, nullable=False, default=0)
    trade_count = Column(Integer, nullable=False, default=0)
    processed = Column(Boolean, nullable=False, default=True)


class TradeRow(Base):
    __tablename__ = "trades"
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=False, index=True)
    contract_note_id = Column(Text, ForeignKey("contract_notes.id"), nullable=False, index=True)
    symbol = Column(Text, nullable=False)
    trade_type = Column(Text, nullable=False)
    quantity = Column(Float, nullable=False)
    price = Column(Float, nullable=False)
    order_value = Column(Float, nullable=False)
    exchange = Column(Text, nullable=False)
    date = Column(DateTime, default=datetime.utcnow)


class ChargesRow(Base):
    __tablename__ = "charges"
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=False, index=True)
    contract_note_id = Column(Text, ForeignKey("contract_notes.id"), nullable=False, index=True)
    brokerage = Column(Float, nullable=False, default=0)
    stt = Column(Float, nullable=False, default=0)
    gst = Column(Float, nullable=False, default=0)
    stamp_duty = Column(Float, nullable=False, default=0)
    exchange_charges = Column(Float, nullable=False, default=0)
    sebi_charges = Column(Float, nullable=False, default=0)
    total_charges = Column(Float, nullable=False, default=0)
    date = Column(DateTime, default=datetime.utcnow)


def make_engine(url: str):
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=False, **kwargs)
    return create_engine(url, echo=False)


def make_session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


def init_db(engine):
    Base.metadata.create_all(bind=engine)
