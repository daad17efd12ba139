"""Import API endpoints."""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from l2scheme.api.schemas import (
    ConfigImportRequest,
    DirectoryImportResponse,
    MacTableImportRequest,
)
from l2scheme.core.config import get_settings
from l2scheme.db.database import get_db
from l2scheme.services.import_service import ImportService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/config")
def import_config(request: ConfigImportRequest, db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Import a D-Link or OLT configuration dump."""
    result = ImportService(db).import_config(
        request.config_text, request.device_ip, request.device_type
    )
    if not result["success"]:
        raise HTTPException(status_code=400, detail=result.get("error") or result["message"])
    return result


@router.post("/mac-table")
def import_mac_table(request: MacTableImportRequest, db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Import an fdb dump and re-run topology analysis for its VLANs."""
    result = ImportService(db).import_mac_table(
        request.mac_table_text, request.device_ip, request.format
    )
    if not result["success"]:
        status_code = 404 if "not found" in (result.get("error") or "") else 400
        raise HTTPException(status_code=status_code, detail=result.get("error") or result["message"])
    return result


@router.post("/directory", response_model=DirectoryImportResponse)
def import_directory(db: Session = Depends(get_db)):
    """Import every config and MAC table below the configured data directory."""
    return ImportService(db).import_from_directory(get_settings().data_dir)
