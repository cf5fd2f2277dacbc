"""
Betting routes backed by a MatchRepository.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from backend.dependencies import get_match_repository
from backend.repositories import MatchRepository, NotFoundError
from backend.schemas import MatchSchema, OddsSchema

router = APIRouter(prefix="/betting", tags=["betting"])


@router.get("/matches", response_model=list[MatchSchema])
def list_matches(repo: MatchRepository = Depends(get_match_repository)):
    return [match.as_dict() for match in repo.list_matches()]


@router.get(
    "/matches/{match_id}",
    response_model=MatchSchema,
)
def get_match(match_id: str, repo: MatchRepository = Depends(get_match_repository)):
    try:
        return repo.get_match(match_id).as_dict()
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail="match not found") from exc


@router.get("/matches/{match_id}/odds", response_model=list[OddsSchema])
def get_match_odds(match_id: str, repo: MatchRepository = Depends(get_match_repository)):
    return [odds.as_dict() for odds in repo.list_odds(match_id)]
