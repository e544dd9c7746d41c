from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from ..dependencies import Services, get_services
from ..exceptions import ProblemDetail, http_problem
from ..schemas import PlayerOut, TempPlayer, TempPlayerCreate, TempPlayerOut, VenueOut

router = APIRouter(
    tags=["reference"],
    responses={404: {"model": ProblemDetail}},
)


def _to_temp_out(player: TempPlayer) -> TempPlayerOut:
    return TempPlayerOut(
        id=player.id,
        name=player.name,
        venueId=player.venue_id,
        createdAt=player.created_at,
        expiresAt=player.expires_at,
        active=player.active,
    )


@router.get("/players", response_model=List[PlayerOut])
async def list_players(
    venue_id: Optional[str] = Query(None, alias="venueId"),
    refresh: bool = False,
    services: Services = Depends(get_services),
) -> List[PlayerOut]:
    if refresh:
        await services.reference.refresh(services.remote)

    players = [
        PlayerOut(id=p.id, name=p.name)
        for p in await services.reference.get_players()
        if p.active
    ]
    if venue_id:
        players.extend(
            PlayerOut(id=p.id, name=p.name, temporary=True)
            for p in await services.temp_players.for_venue(venue_id)
        )
    return players


@router.get("/venues", response_model=List[VenueOut])
async def list_venues(
    refresh: bool = False, services: Services = Depends(get_services)
) -> List[VenueOut]:
    if refresh:
        await services.reference.refresh(services.remote)
    return [
        VenueOut(id=v.id, name=v.name, surface=v.surface)
        for v in await services.reference.get_venues()
    ]


@router.get("/venues/{venue_id}/temp-players", response_model=List[TempPlayerOut])
async def list_temp_players(
    venue_id: str, services: Services = Depends(get_services)
) -> List[TempPlayerOut]:
    return [_to_temp_out(p) for p in await services.temp_players.for_venue(venue_id)]


@router.post(
    "/venues/{venue_id}/temp-players",
    response_model=TempPlayerOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_temp_player(
    venue_id: str,
    body: TempPlayerCreate,
    services: Services = Depends(get_services),
) -> TempPlayerOut:
    player = await services.temp_players.add(body.name, venue_id)
    return _to_temp_out(player)


@router.delete("/temp-players/{player_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_temp_player(
    player_id: str, services: Services = Depends(get_services)
) -> Response:
    if not await services.temp_players.deactivate(player_id):
        raise http_problem(
            status_code=404,
            detail="temp player not found",
            code="temp_player_not_found",
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
