# asclepius/routes/exercises.py
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from asclepius.context import SessionContext
from asclepius.deps import get_exercise_workflow, get_session
from asclepius.schemas.exercise import CountdownState, Exercise, ExerciseListing
from asclepius.services.exercises import ExerciseWorkflow
from asclepius.storage.files import MediaUpload

router = APIRouter(prefix="/exercises", tags=["exercises"])


@router.post("/{athlete_id}", response_model=Exercise, status_code=201)
async def create_exercise(
    athlete_id: str,
    title: str = Form(""),
    timer_minutes: str = Form(""),
    due_date: str = Form(""),
    media: Optional[UploadFile] = File(None),
    ctx: SessionContext = Depends(get_session),
    workflow: ExerciseWorkflow = Depends(get_exercise_workflow),
):
    upload = await MediaUpload.from_upload_file(media)
    return await workflow.create_exercise(ctx, athlete_id, title, timer_minutes, upload, due_date)


@router.get("/{athlete_id}", response_model=ExerciseListing)
async def list_exercises(
    athlete_id: str,
    ctx: SessionContext = Depends(get_session),
    workflow: ExerciseWorkflow = Depends(get_exercise_workflow),
):
    return await workflow.list_exercises(ctx, athlete_id)


@router.get("/{athlete_id}/progress", response_model=List[Exercise])
async def client_progress(
    athlete_id: str,
    view: str = "completed",
    ctx: SessionContext = Depends(get_session),
    workflow: ExerciseWorkflow = Depends(get_exercise_workflow),
):
    return await workflow.client_progress(ctx, athlete_id, view)


@router.post("/{athlete_id}/{exercise_id}/start", response_model=CountdownState)
async def start_countdown(
    athlete_id: str,
    exercise_id: str,
    ctx: SessionContext = Depends(get_session),
    workflow: ExerciseWorkflow = Depends(get_exercise_workflow),
):
    await workflow.start_countdown(ctx, athlete_id, exercise_id)
    return await workflow.countdown_state(ctx, athlete_id, exercise_id)


@router.get("/{athlete_id}/{exercise_id}/countdown", response_model=CountdownState)
async def countdown(
    athlete_id: str,
    exercise_id: str,
    ctx: SessionContext = Depends(get_session),
    workflow: ExerciseWorkflow = Depends(get_exercise_workflow),
):
    return await workflow.countdown_state(ctx, athlete_id, exercise_id)


@router.post("/{athlete_id}/{exercise_id}/submit", response_model=Exercise)
async def submit_feedback(
    athlete_id: str,
    exercise_id: str,
    feedback: str = Form(""),
    pain_level: str = Form(""),
    ctx: SessionContext = Depends(get_session),
    workflow: ExerciseWorkflow = Depends(get_exercise_workflow),
):
    return await workflow.submit_feedback(ctx, athlete_id, exercise_id, feedback, pain_level)


@router.put("/{athlete_id}/{exercise_id}/feedback", response_model=Exercise)
async def save_feedback(
    athlete_id: str,
    exercise_id: str,
    feedback: str = Form(""),
    rating: str = Form(""),
    ctx: SessionContext = Depends(get_session),
    workflow: ExerciseWorkflow = Depends(get_exercise_workflow),
):
    return await workflow.save_feedback(ctx, athlete_id, exercise_id, feedback, rating)
