from typing import List

from fastapi import APIRouter, Depends, Response, status

from ..dependencies import Services, get_services
from ..exceptions import MatchNotFound, ProblemDetail
from ..schemas import (
    MatchCreate,
    MatchOut,
    MatchRecord,
    PointEvent,
    PointEventOut,
    PointIn,
    SyncOut,
    TeamsOut,
    TeamsRandomizeIn,
    UndoOut,
)
from ..scoring import MatchState, match_display, randomize_teams
from ..services.live_match import LiveMatch

router = APIRouter(
    prefix="/matches",
    tags=["matches"],
    responses={404: {"model": ProblemDetail}},
)

teams_router = APIRouter(prefix="/teams", tags=["matches"])


def _to_match_out(record: MatchRecord, state: MatchState | None = None) -> MatchOut:
    if state is None and record.score is not None:
        state = MatchState.from_dict(record.score)
    return MatchOut(
        matchId=record.match_id,
        venue=record.venue,
        matchType=record.match_type,
        mode=record.format_mode,
        teamA=record.team_a,
        teamB=record.team_b,
        score=record.score,
        display=match_display(state) if state is not None else None,
        currentServer=record.current_server,
        serverTeam=record.server_team,
        completed=record.completed,
        createdAt=record.created_at,
        updatedAt=record.updated_at,
    )


def _live_out(live: LiveMatch) -> MatchOut:
    return _to_match_out(live.record, live.state)


def _to_event_out(event: PointEvent) -> PointEventOut:
    return PointEventOut(
        id=event.id,
        matchId=event.match_id,
        timestamp=event.timestamp,
        serverPlayerId=event.server_player_id,
        serveType=event.serve_type,
        pointWinnerTeam=event.point_winner_team,
        synced=event.synced,
    )


@router.post("", response_model=MatchOut, status_code=status.HTTP_201_CREATED)
async def create_match(
    body: MatchCreate, services: Services = Depends(get_services)
) -> MatchOut:
    live = await services.live.start_match(
        mode=body.mode,
        team_a=body.teamA,
        team_b=body.teamB,
        servers=body.servers,
        venue=body.venue,
        match_type=body.matchType,
        match_id=body.matchId,
    )
    return _live_out(live)


@router.get("", response_model=List[MatchOut])
async def list_matches(services: Services = Depends(get_services)) -> List[MatchOut]:
    # Degrades to an empty list when local storage is unreadable.
    return [_to_match_out(record) for record in await services.live.resumable()]


@router.get("/{mid}", response_model=MatchOut)
async def get_match(mid: str, services: Services = Depends(get_services)) -> MatchOut:
    return _live_out(await services.live.resume(mid))


@router.get("/{mid}/events", response_model=List[PointEventOut])
async def list_events(
    mid: str, services: Services = Depends(get_services)
) -> List[PointEventOut]:
    if await services.matches.get(mid) is None:
        raise MatchNotFound(mid)
    return [_to_event_out(e) for e in await services.events.all_for(mid)]


@router.post("/{mid}/points", response_model=MatchOut)
async def record_point(
    mid: str, body: PointIn, services: Services = Depends(get_services)
) -> MatchOut:
    live, _ = await services.live.record_point(
        mid,
        body.team,
        server_player_id=body.serverPlayerId,
        serve_type=body.serveType,
        timestamp=body.timestamp,
        event_id=body.eventId,
    )
    return _live_out(live)


@router.post("/{mid}/undo", response_model=UndoOut)
async def undo_point(mid: str, services: Services = Depends(get_services)) -> UndoOut:
    live, undone = await services.live.undo_point(mid)
    return UndoOut(
        undone=_to_event_out(undone) if undone is not None else None,
        match=_live_out(live),
    )


@router.post("/{mid}/sync", response_model=SyncOut)
async def sync_match(mid: str, services: Services = Depends(get_services)) -> SyncOut:
    result = await services.sync.sync(mid)
    return SyncOut(
        matchId=mid,
        submitted=result.submitted,
        inserted=result.inserted,
        total=result.total,
    )


@router.post("/{mid}/complete", response_model=SyncOut)
async def complete_match(
    mid: str, services: Services = Depends(get_services)
) -> SyncOut:
    result = await services.live.complete(mid)
    return SyncOut(
        matchId=mid,
        submitted=result.submitted,
        inserted=result.inserted,
        total=result.total,
    )


@router.delete("/{mid}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_match(mid: str, services: Services = Depends(get_services)) -> Response:
    if not await services.live.abandon(mid):
        raise MatchNotFound(mid)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@teams_router.post("/randomize", response_model=TeamsOut)
async def randomize(body: TeamsRandomizeIn) -> TeamsOut:
    team_a, team_b = randomize_teams(body.playerIds)
    return TeamsOut(teamA=team_a, teamB=team_b)
