# asclepius/routes/directory.py
from typing import List

from fastapi import APIRouter, Depends

from asclepius.authz import require_role
from asclepius.context import PHYSIO, SessionContext
from asclepius.db import get_db
from asclepius.deps import get_session
from asclepius.schemas.directory import AthleteProfile, PhysioProfile
from asclepius.services import accounts

router = APIRouter(tags=["directory"])


@router.get("/athletes", response_model=List[AthleteProfile])
async def athletes(ctx: SessionContext = Depends(require_role(PHYSIO))):
    return await accounts.list_athletes(get_db(), ctx)


@router.get("/athletes/{athlete_id}", response_model=AthleteProfile)
async def athlete(athlete_id: str, ctx: SessionContext = Depends(require_role(PHYSIO))):
    return await accounts.get_athlete(get_db(), athlete_id)


@router.get("/physios", response_model=List[PhysioProfile])
async def physios(ctx: SessionContext = Depends(get_session)):
    return await accounts.list_physios(get_db(), ctx)
