import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.orm import Session

from chatorder.core.config import INGEST_API_TOKEN
from chatorder.core.database import get_db
from chatorder.dispatcher import handle_message
from chatorder.models.processed_message import ProcessedMessage
from chatorder.schemas.ingest import InboundMessage, IngestResult, SimulatorResult
from chatorder.services.session_store import get_state
from chatorder.services.text_normalize import normalize_phone

router = APIRouter()
logger = logging.getLogger(__name__)


def require_ingest_token(x_ingest_token: Optional[str] = Header(default=None)) -> None:
    if not INGEST_API_TOKEN:
        return
    if not x_ingest_token or not hmac.compare_digest(x_ingest_token, INGEST_API_TOKEN):
        raise HTTPException(status_code=401, detail="Invalid ingest token")


@router.get("/health")
def health():
    return {"status": "ok"}


@router.post("/ingest/{tenant_id}/messages", dependencies=[Depends(require_ingest_token)])
def ingest_message(tenant_id: int, payload: InboundMessage, db: Session = Depends(get_db)):
    if payload.message_id:
        if db.query(ProcessedMessage).filter_by(message_id=payload.message_id).first():
            logger.info("[INGEST] duplicate message_id=%s", payload.message_id)
            return {"status": "duplicate"}
        db.add(ProcessedMessage(message_id=payload.message_id, tenant_id=tenant_id))
        db.commit()

    result = handle_message(db, tenant_id, payload.from_phone, payload.text, payload.location)
    logger.info("[INGEST] handled kind=%s used=%s", result.kind, result.used)
    return result


@router.post("/simulator/message", response_model=SimulatorResult)
def simulate(tenant_id: int, phone: str, text: str = "", db: Session = Depends(get_db)):
    result: IngestResult = handle_message(db, tenant_id, phone, text)
    state = get_state(db, tenant_id, normalize_phone(phone))
    return SimulatorResult(**result.model_dump(), state=state.state.value)
