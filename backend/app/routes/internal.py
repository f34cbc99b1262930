from __future__ import annotations
from dataclasses import asdict, is_dataclass
from typing import Literal
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from app.auth_deps import require_sweep_token
from app.db import get_session
from app.jobs.sweepers import SWEEPS

router = APIRouter(prefix="/internal", tags=["internal"], dependencies=[Depends(require_sweep_token)])

@router.post("/sweeps/{name}")
async def run_sweep(name: Literal["expire", "ephemeral", "stale"], session: AsyncSession = Depends(get_session)):
    result = await SWEEPS[name](session)
    if is_dataclass(result):
        return {"sweep": name, **asdict(result)}
    return {"sweep": name, "expired": result}
