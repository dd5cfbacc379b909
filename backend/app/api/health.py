"""
Health check endpoint.
"""
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session
from app.core.database import get_db

router = APIRouter()


@router.get("/health")
async def health(db: Session = Depends(get_db)):
    """Liveness plus a database round trip."""
    db.execute(text("SELECT 1"))
    return {"status": "ok"}
