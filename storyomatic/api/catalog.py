from __future__ import annotations

from typing import List

from fastapi import APIRouter
from pydantic import BaseModel

from ..genres import GENRES
from ..instructions import STORY_INSTRUCTIONS
from ..prompts import STRATEGY_VERSIONS

router = APIRouter(prefix="/api", tags=["catalog"])


class GenreResponse(BaseModel):
    key: str
    name: str
    authors: List[str]
    description: str
    restrictions: str


class InstructionResponse(BaseModel):
    title: str
    prompt: str


@router.get("/genres", response_model=List[GenreResponse])
async def list_genres():
    """List available genres"""
    return [
        GenreResponse(
            key=g.key,
            name=g.name,
            authors=list(g.authors),
            description=g.description,
            restrictions=g.restrictions,
        )
        for g in GENRES.values()
    ]


@router.get("/instructions", response_model=List[InstructionResponse])
async def list_instructions():
    """List the narrative instructions a choice can carry"""
    return [InstructionResponse(title=i.title, prompt=i.prompt) for i in STORY_INSTRUCTIONS]


@router.get("/strategies", response_model=List[str])
async def list_strategies():
    """List prompt strategy versions"""
    return list(STRATEGY_VERSIONS)
