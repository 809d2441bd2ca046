"""Request/response models for poll endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from folies.gamification.schemas import UnlockedBadgeResponse


class PollDishResponse(BaseModel):
    id: uuid.UUID
    name: str
    image_url: str = ""
    votes: int = 0


class PollResponse(BaseModel):
    id: uuid.UUID
    title: str
    status: str
    start_date: datetime
    end_date: datetime
    time_left: str
    dishes: list[PollDishResponse]
    total_votes: int
    user_vote: uuid.UUID | None = None


class ActivePollResponse(BaseModel):
    poll: PollResponse | None = None


class VoteRequest(BaseModel):
    dish_id: uuid.UUID


class VoteResponse(BaseModel):
    poll_id: uuid.UUID
    dish_id: uuid.UUID
    is_first_vote: bool
    vote_counts: dict[str, int]
    total_votes: int
    new_badges: list[UnlockedBadgeResponse] = Field(default_factory=list)


class PollCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=256)
    dish_ids: list[uuid.UUID] = Field(..., min_length=3, max_length=3)
    end_date: datetime
    start_date: datetime | None = None


class AdminPollResponse(PollResponse):
    winner_dish_id: uuid.UUID | None = None


class AdminPollListResponse(BaseModel):
    polls: list[AdminPollResponse]
