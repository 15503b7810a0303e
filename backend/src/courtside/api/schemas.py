"""Request bodies shared by the HTTP routes and the channel handlers."""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from courtside.models.court import CourtMode
from courtside.services.queue_service import MAX_TEAM_MEMBERS, MAX_TEAM_NAME_LENGTH


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class JoinQueueRequest(CamelModel):
    name: str = Field(
        min_length=1,
        max_length=MAX_TEAM_NAME_LENGTH,
        validation_alias=AliasChoices("name", "teamName"),
    )
    members: int = Field(ge=1, le=MAX_TEAM_MEMBERS)
    contact_info: str | None = Field(default=None, alias="contactInfo")


class LeaveQueueRequest(CamelModel):
    team_id: str = Field(alias="teamId")


class FinalScore(BaseModel):
    score1: int = Field(ge=0)
    score2: int = Field(ge=0)


class ConfirmResultRequest(CamelModel):
    match_id: str = Field(alias="matchId")
    team_id: str = Field(alias="teamId")
    confirmed: bool
    final_score: FinalScore | None = Field(default=None, alias="finalScore")


class RoomRequest(BaseModel):
    room: str


class ScoreUpdateRequest(BaseModel):
    score1: int = Field(ge=0)
    score2: int = Field(ge=0)


class StartMatchRequest(CamelModel):
    target_score: int | None = Field(default=None, ge=1, alias="targetScore")


class ForceResolveRequest(BaseModel):
    score1: int | None = Field(default=None, ge=0)
    score2: int | None = Field(default=None, ge=0)


class ReorderQueueRequest(CamelModel):
    team_ids: list[str] = Field(alias="teamIds")


class CourtUpdateRequest(CamelModel):
    is_open: bool | None = Field(default=None, alias="isOpen")
    mode: CourtMode | None = None
    cooldown_minutes: int | None = Field(default=None, ge=0, alias="cooldownMinutes")


class ChampionModeRequest(CamelModel):
    cooldown_minutes: int | None = Field(default=None, ge=0, alias="cooldownMinutes")


class AdminActionRequest(CamelModel):
    """`admin-action` frame body; `data` is validated per action."""

    action: str
    data: dict = Field(default_factory=dict)
    admin_id: str | None = Field(default=None, alias="adminId")
