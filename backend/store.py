# backend/store.py

import logging
import threading
import uuid
from datetime import datetime
from typing import Callable, Dict, List

from sqlalchemy.exc import SQLAlchemyError

from .db import ChargesRow, ContractNote, TradeRow
from .errors import PersistenceFailed
from .schemas import ContractNoteSummary, ExtractedData, TradeRecord

logger = logging.getLogger(__name__)

SummaryCallback = Callable[[List[ContractNoteSummary]], None]


class SqlDocumentStore:
    """
    Per-user contract-note records on top of SQLAlchemy.
    Writes for one contract note share a single transaction, and subscribers
    are handed a fresh snapshot of the user's summaries after every commit.
    """

    def __init__(self, session_factory, clock: Callable[[], datetime] = datetime.utcnow):
        self.session_factory = session_factory
        self.clock = clock
        self._subscribers: Dict[str, List[SummaryCallback]] = {}
        self._lock = threading.Lock()
        self._delivery_locks: Dict[str, threading.RLock] = {}

    def save_contract_note(self, user_id: str, data: ExtractedData, file_name: str) -> str:
        note_id = uuid.uuid4().hex
        now = self.clock()
        charges = data.charges

        try:
            with self.session_factory() as session, session.begin():
                session.add(
                    ContractNote(
                        id=note_id,
                        user_id=user_id,
                        file_name=file_name,
                        upload_date=now,
                        gross_pnl=data.summary.gross_pnl or 0,
                        net_pnl=data.summary.net_pnl or 0,
                        total_charges=charges.total_charges or 0,
                        trade_count=len(data.trades),
                        processed=True,
                    )
                )
                session.flush()
                session.add_all(
                    TradeRow(user_id=user_id, contract_note_id=note_id, date=now, **trade.model_dump())
                    for trade in data.trades
                )
                session.add(
                    ChargesRow(
                        user_id=user_id,
                        contract_note_id=note_id,
                        date=now,
                        brokerage=charges.brokerage,
                        stt=charges.stt,
                        gst=charges.gst,
                        stamp_duty=charges.stamp_duty or 0,
                        exchange_charges=charges.exchange_charges or 0,
                        sebi_charges=charges.sebi_charges or 0,
                        total_charges=charges.total_charges,
                    )
                )
        except SQLAlchemyError as e:
            logger.error("Saving contract note %s for %s rolled back: %s", file_name, user_id, e)
            raise PersistenceFailed(f"Failed to save contract note: {type(e).__name__}") from e

        logger.info("Saved contract note %s (%d trades) for %s", note_id, len(data.trades), user_id)
        self._notify(user_id)
        return note_id

    def list_summaries(self, user_id: str) -> List[ContractNoteSummary]:
        with self.session_factory() as session:
            rows = (
                session.query(ContractNote)
                .filter(ContractNote.user_id == user_id)
                .order_by(ContractNote.upload_date.desc())
                .all()
            )
            return [ContractNoteSummary.model_validate(row) for row in rows]

    def list_trades(self, user_id: str) -> List[TradeRecord]:
        with self.session_factory() as session:
            rows = (
                session.query(TradeRow)
                .filter(TradeRow.user_id == user_id)
                .order_by(TradeRow.date.desc(), TradeRow.id)
                .all()
            )
            return [TradeRecord.model_validate(row) for row in rows]

    # ---------------------------
    # Live query
    # ---------------------------

    def _delivery_lock(self, user_id: str) -> threading.RLock:
        with self._lock:
            return self._delivery_locks.setdefault(user_id, threading.RLock())

    def subscribe_summaries(self, user_id: str, callback: SummaryCallback) -> Callable[[], None]:
        """
        Register callback for user_id and deliver the current snapshot right away.
        Snapshots for one user are delivered in commit order; the first one
        always precedes any update.
        """
        def unsubscribe():
            with self._lock:
                callbacks = self._subscribers.get(user_id, [])
                if callback in callbacks:
                    callbacks.remove(callback)
                if not callbacks:
                    self._subscribers.pop(user_id, None)

        with self._delivery_lock(user_id):
            with self._lock:
                self._subscribers.setdefault(user_id, []).append(callback)
            try:
                snapshot = self.list_summaries(user_id)
            except SQLAlchemyError:
                unsubscribe()
                raise
            callback(snapshot)
        return unsubscribe

    def _notify(self, user_id: str) -> None:
        with self._delivery_lock(user_id):
            with self._lock:
                callbacks = list(self._subscribers.get(user_id, []))
            if not callbacks:
                return

            try:
                snapshot = self.list_summaries(user_id)
            except SQLAlchemyError as e:
                logger.error("Could not refresh summaries for %s subscribers: %s", user_id, e)
                return

            for callback in callbacks:
                try:
                    callback(list(snapshot))
                except Exception:
                    logger.exception("Summary subscriber for %s raised", user_id)
