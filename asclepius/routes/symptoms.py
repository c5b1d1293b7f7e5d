# asclepius/routes/symptoms.py
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from asclepius.context import SessionContext
from asclepius.deps import get_session, get_symptom_service
from asclepius.schemas.symptom import SymptomLog
from asclepius.services.symptoms import SymptomLogService
from asclepius.storage.files import MediaUpload

router = APIRouter(prefix="/symptoms", tags=["symptoms"])


@router.post("", response_model=SymptomLog, status_code=201)
async def create_log(
    symptom_description: str = Form(""),
    pain_level: str = Form(""),
    media: Optional[UploadFile] = File(None),
    ctx: SessionContext = Depends(get_session),
    service: SymptomLogService = Depends(get_symptom_service),
):
    upload = await MediaUpload.from_upload_file(media)
    return await service.create(ctx, ctx.uid, symptom_description, pain_level, upload)


@router.get("/{athlete_id}", response_model=List[SymptomLog])
async def list_logs(
    athlete_id: str,
    ctx: SessionContext = Depends(get_session),
    service: SymptomLogService = Depends(get_symptom_service),
):
    return await service.list(ctx, athlete_id)


@router.put("/{log_id}", response_model=SymptomLog)
async def update_log(
    log_id: str,
    symptom_description: str = Form(""),
    pain_level: str = Form(""),
    ctx: SessionContext = Depends(get_session),
    service: SymptomLogService = Depends(get_symptom_service),
):
    return await service.update(ctx, ctx.uid, log_id, symptom_description, pain_level)


@router.put("/{log_id}/media", response_model=SymptomLog)
async def replace_media(
    log_id: str,
    media: Optional[UploadFile] = File(None),
    ctx: SessionContext = Depends(get_session),
    service: SymptomLogService = Depends(get_symptom_service),
):
    upload = await MediaUpload.from_upload_file(media)
    return await service.replace_media(ctx, ctx.uid, log_id, upload)


@router.delete("/{log_id}")
async def delete_log(
    log_id: str,
    ctx: SessionContext = Depends(get_session),
    service: SymptomLogService = Depends(get_symptom_service),
):
    await service.delete(ctx, ctx.uid, log_id)
    return {"message": "Symptom log deleted"}
