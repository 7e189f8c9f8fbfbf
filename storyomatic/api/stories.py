from __future__ import annotations

import dataclasses
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, validator

from ..exceptions import InstructionNotFoundError
from ..genres import GENRES
from ..instructions import instruction_prompts
from ..library import StoryLibrary
from ..models import (
    COMPLEXITY_LEVELS,
    EMOTIONAL_TONES,
    LANGUAGES,
    PERSPECTIVES,
    PROTAGONIST_GENDERS,
    Choice,
    StorySettings,
    new_id,
)
from ..prompts import STRATEGY_VERSIONS
from ..providers import TextProvider
from ..story import StoryManager
from .dependencies import (
    forget_manager,
    get_library,
    get_provider,
    get_story_manager,
    get_validated_story_id,
    remember_manager,
    run_engine,
)

router = APIRouter(prefix="/api/stories", tags=["stories"])


def _check_choice(value: Optional[str], allowed, field_name: str) -> Optional[str]:
    if value is not None and value not in allowed:
        raise ValueError(f"{field_name} must be one of: {', '.join(allowed)}")
    return value


class StorySettingsRequest(BaseModel):
    genre: str = Field(..., max_length=50)
    perspective: str = Field(default="third")
    protagonist_gender: str = Field(default="other")
    style_inspiration: Optional[str] = Field(None, max_length=200)
    language: str = Field(default="en")
    prompt_strategy: str = Field(default="v1")
    opening_sentence: Optional[str] = Field(None, max_length=5000)
    opening_title: Optional[str] = Field(None, max_length=200)
    complexity_level: Optional[str] = None
    emotional_tone: Optional[str] = None

    @validator('genre')
    def known_genre(cls, v):  # pylint: disable=no-self-argument
        return _check_choice(v, list(GENRES.keys()), "genre")

    @validator('perspective')
    def known_perspective(cls, v):  # pylint: disable=no-self-argument
        return _check_choice(v, PERSPECTIVES, "perspective")

    @validator('protagonist_gender')
    def known_gender(cls, v):  # pylint: disable=no-self-argument
        return _check_choice(v, PROTAGONIST_GENDERS, "protagonist_gender")

    @validator('language')
    def known_language(cls, v):  # pylint: disable=no-self-argument
        return _check_choice(v, LANGUAGES, "language")

    @validator('prompt_strategy')
    def known_strategy(cls, v):  # pylint: disable=no-self-argument
        return _check_choice(v, STRATEGY_VERSIONS, "prompt_strategy")

    @validator('complexity_level')
    def known_complexity(cls, v):  # pylint: disable=no-self-argument
        return _check_choice(v, COMPLEXITY_LEVELS, "complexity_level")

    @validator('emotional_tone')
    def known_tone(cls, v):  # pylint: disable=no-self-argument
        return _check_choice(v, EMOTIONAL_TONES, "emotional_tone")

    @validator('style_inspiration', 'opening_sentence', 'opening_title')
    def strip_whitespace(cls, v):  # pylint: disable=no-self-argument
        return (v.strip() or None) if v else v


# Settings an edit may change but never unset
REQUIRED_SETTINGS = ("genre", "perspective", "protagonist_gender", "prompt_strategy")


class SettingsUpdateRequest(BaseModel):
    genre: Optional[str] = Field(None, max_length=50)
    perspective: Optional[str] = None
    protagonist_gender: Optional[str] = None
    style_inspiration: Optional[str] = Field(None, max_length=200)
    prompt_strategy: Optional[str] = None
    complexity_level: Optional[str] = None
    emotional_tone: Optional[str] = None

    @validator('genre')
    def known_genre(cls, v):  # pylint: disable=no-self-argument
        return _check_choice(v, list(GENRES.keys()), "genre")

    @validator('perspective')
    def known_perspective(cls, v):  # pylint: disable=no-self-argument
        return _check_choice(v, PERSPECTIVES, "perspective")

    @validator('protagonist_gender')
    def known_gender(cls, v):  # pylint: disable=no-self-argument
        return _check_choice(v, PROTAGONIST_GENDERS, "protagonist_gender")

    @validator('prompt_strategy')
    def known_strategy(cls, v):  # pylint: disable=no-self-argument
        return _check_choice(v, STRATEGY_VERSIONS, "prompt_strategy")

    @validator('complexity_level')
    def known_complexity(cls, v):  # pylint: disable=no-self-argument
        return _check_choice(v, COMPLEXITY_LEVELS, "complexity_level")

    @validator('emotional_tone')
    def known_tone(cls, v):  # pylint: disable=no-self-argument
        return _check_choice(v, EMOTIONAL_TONES, "emotional_tone")


class ChoiceRequest(BaseModel):
    choice_id: Optional[str] = Field(None, max_length=100, description="Id of an offered choice")
    text: Optional[str] = Field(None, min_length=1, max_length=2000, description="Custom choice text")
    instructions: List[str] = Field(default_factory=list, description="Instruction titles")

    @validator('text')
    def strip_whitespace(cls, v):  # pylint: disable=no-self-argument
        return v.strip() if v else v


class StoryListItem(BaseModel):
    id: str
    title: str
    summary: str
    last_modified: str


class ChoiceResponse(BaseModel):
    id: str
    text: str


class SegmentResponse(BaseModel):
    id: str
    content: str
    choices: List[ChoiceResponse]


class StoryResponse(BaseModel):
    id: Optional[str]
    title: Optional[str]
    status: str
    segments: List[SegmentResponse]
    current_segment: Optional[SegmentResponse]
    error: Optional[str]
    settings: Optional[Dict[str, Any]]
    last_modified: str
    debug_log: List[Dict[str, Any]] = []


class SummaryResponse(BaseModel):
    summary: str
    cached: bool


def _segment_response(segment) -> SegmentResponse:
    return SegmentResponse(
        id=segment.id,
        content=segment.content,
        choices=[ChoiceResponse(id=c.id, text=c.text) for c in segment.choices],
    )


def _story_response(manager: StoryManager) -> StoryResponse:
    state = manager.state
    return StoryResponse(
        id=state.id,
        title=state.title,
        status=state.status,
        segments=[_segment_response(s) for s in state.segments],
        current_segment=_segment_response(state.current_segment) if state.current_segment else None,
        error=state.error,
        settings=state.settings.to_dict() if state.settings else None,
        last_modified=state.last_modified,
        debug_log=[e.to_dict() for e in state.debug_log],
    )


@router.get("", response_model=List[StoryListItem])
async def list_stories(library: StoryLibrary = Depends(get_library)):
    """List saved stories, newest first"""
    stories = await run_engine(library.get_all_stories)
    return [
        StoryListItem(id=s.id, title=s.title, summary=s.summary, last_modified=s.last_modified)
        for s in stories
    ]


@router.post("", response_model=StoryResponse)
async def start_story(
    request: StorySettingsRequest,
    library: StoryLibrary = Depends(get_library),
    provider: Optional[TextProvider] = Depends(get_provider),
):
    """Start a new story and generate its opening scene"""
    settings = StorySettings(**request.dict())
    manager = StoryManager(library, provider=provider)
    await run_engine(manager.start_story, settings)
    remember_manager(manager)
    return _story_response(manager)


@router.get("/{story_id}", response_model=StoryResponse)
async def get_story(manager: StoryManager = Depends(get_story_manager)):
    """Get a story's full state"""
    return _story_response(manager)


@router.delete("/{story_id}")
async def delete_story(
    story_id: str = Depends(get_validated_story_id),
    library: StoryLibrary = Depends(get_library),
):
    """Delete a story"""
    if await run_engine(library.get_story, story_id) is None:
        raise HTTPException(status_code=404, detail="Story not found")
    await run_engine(library.delete_story, story_id)
    forget_manager(story_id)
    return {"deleted": story_id}


@router.post("/{story_id}/choices", response_model=StoryResponse)
async def make_choice(request: ChoiceRequest, manager: StoryManager = Depends(get_story_manager)):
    """Continue the story with an offered choice or a custom one"""
    try:
        instructions = instruction_prompts(request.instructions)
    except InstructionNotFoundError as e:
        raise HTTPException(status_code=400, detail=e.message)

    if request.text:
        choice = Choice(id=new_id(), text=request.text, instructions=instructions)
    elif request.choice_id:
        current = manager.state.current_segment
        offered = {c.id: c for c in (current.choices if current else [])}
        picked = offered.get(request.choice_id)
        if picked is None:
            raise HTTPException(status_code=400, detail="Invalid choice ID")
        choice = Choice(id=picked.id, text=picked.text, instructions=instructions)
    else:
        raise HTTPException(status_code=400, detail="Provide choice_id or text")

    await run_engine(manager.handle_choice, choice)
    return _story_response(manager)


@router.post("/{story_id}/regenerate", response_model=StoryResponse)
async def regenerate_choices(manager: StoryManager = Depends(get_story_manager)):
    """Replace the pending choices, keeping the current text"""
    await run_engine(manager.regenerate_choices)
    return _story_response(manager)


@router.post("/{story_id}/retry", response_model=StoryResponse)
async def retry(manager: StoryManager = Depends(get_story_manager)):
    """Retry the last start or choice"""
    await run_engine(manager.handle_retry)
    return _story_response(manager)


@router.put("/{story_id}/settings", response_model=StoryResponse)
async def update_settings(request: SettingsUpdateRequest, manager: StoryManager = Depends(get_story_manager)):
    """Edit story settings; marks the change in the story and regenerates choices"""
    current = manager.state.settings
    if current is None:
        raise HTTPException(status_code=400, detail="Story has no settings")

    updates = request.dict(exclude_unset=True)
    cleared = sorted(k for k in REQUIRED_SETTINGS if k in updates and updates[k] is None)
    if cleared:
        raise HTTPException(status_code=422, detail=f"Cannot clear required settings: {', '.join(cleared)}")
    if "style_inspiration" in updates and updates["style_inspiration"] is not None:
        updates["style_inspiration"] = updates["style_inspiration"].strip() or None
    await run_engine(manager.edit_settings, dataclasses.replace(current, **updates))
    return _story_response(manager)


@router.get("/{story_id}/summary", response_model=SummaryResponse)
async def get_summary(manager: StoryManager = Depends(get_story_manager)):
    """Summary of the story so far, regenerated only when the story changed"""
    cached = manager.state.has_valid_summary()
    text = await run_engine(manager.show_summary)
    return SummaryResponse(summary=text, cached=cached)
