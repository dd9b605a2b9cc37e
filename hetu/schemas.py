from datetime import datetime
from typing import Annotated, List, Optional

from pydantic import AnyHttpUrl, BaseModel, ConfigDict, Field, StringConstraints, TypeAdapter, ValidationError, field_validator
from pydantic_core import PydanticCustomError

from .models import SongBase


ShortName = Annotated[str, StringConstraints(max_length=30)]
NameList = Optional[List[ShortName]]
PositiveInt = Optional[Annotated[int, Field(ge=1, strict=True)]]
_HTTP_URL = TypeAdapter(AnyHttpUrl)


class StatusResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"


class SongIn(BaseModel):
    """Payload accepted when creating a song."""

    title: Annotated[str, StringConstraints(min_length=1, max_length=100)]
    album: Optional[Annotated[str, StringConstraints(max_length=100)]] = None
    genre: NameList = None
    lyricist: NameList = None
    composer: NameList = None
    arranger: NameList = None
    artist: NameList = None
    albumartist: NameList = None
    type: NameList = None
    length: PositiveInt = None
    hascover: Optional[bool] = None
    nmn_status: Optional[bool] = None
    date: Optional[Annotated[str, StringConstraints(max_length=30)]] = None
    comment: Optional[Annotated[str, StringConstraints(max_length=10000)]] = None
    lyrics: Optional[Annotated[str, StringConstraints(max_length=10000)]] = None
    track: PositiveInt = None
    tracktotal: PositiveInt = None
    discnumber: PositiveInt = None
    disctotal: PositiveInt = None
    kugolink: Optional[Annotated[str, StringConstraints(max_length=200)]] = None
    qmlink: Optional[Annotated[str, StringConstraints(max_length=200)]] = None
    nelink: Optional[Annotated[str, StringConstraints(max_length=200)]] = None

    @field_validator("kugolink", "qmlink", "nelink")
    @classmethod
    def _validate_link(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        try:
            _HTTP_URL.validate_python(value)
        except ValidationError:
            raise PydanticCustomError("url_parsing", "Input should be a valid http(s) URL") from None
        return value


class SongUpdate(SongIn):
    """Payload accepted when editing a song.

    ``updated_at`` is the timestamp the editor last read; the write is
    rejected when the stored row has moved on since then.
    """

    updated_at: datetime


class SongOut(SongBase):
    id: int
    year: Optional[int] = None
    updated_at: Optional[datetime] = None


class SongListItem(BaseModel):
    """The lightweight projection served by the public song list."""

    id: int
    title: str
    album: Optional[str] = None
    genre: Optional[List[str]] = None
    lyricist: Optional[List[str]] = None
    composer: Optional[List[str]] = None
    arranger: Optional[List[str]] = None
    artist: Optional[List[str]] = None
    length: Optional[int] = None
    hascover: Optional[bool] = None
    date: Optional[str] = None
    type: Optional[List[str]] = None
    year: Optional[int] = None


class SongDetailOut(SongOut):
    normal_lyrics: str = ""
    cover_url: str
    score_url: str


class SongsPage(BaseModel):
    items: List[SongListItem]
    total: int
    page: int
    size: int
    has_next: bool
    total_pages: int


class FilterOptions(BaseModel):
    types: List[str]
    years: List[str]
    lyricists: List[str]
    composers: List[str]
    arrangers: List[str]


class CsrfTokenOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    csrf_token: str = Field(serialization_alias="csrfToken")


class SuccessOut(BaseModel):
    success: bool = True
    message: Optional[str] = None


class UploadOut(SuccessOut):
    model_config = ConfigDict(populate_by_name=True)

    file_name: str = Field(serialization_alias="fileName")
    url: Optional[str] = None


class FileCheckOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    exists: bool
    song_id: str = Field(serialization_alias="songId")
    file_type: str = Field(serialization_alias="fileType")
    url: str


class LoginIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: Annotated[str, StringConstraints(min_length=1, max_length=320)]
    password: Annotated[str, StringConstraints(min_length=1, max_length=256)]
    turnstile_token: Optional[str] = Field(default=None, alias="turnstileToken")


class ChangePasswordIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    old_password: Annotated[str, StringConstraints(min_length=1)] = Field(alias="oldPassword")
    new_password: Annotated[str, StringConstraints(min_length=6, max_length=256)] = Field(alias="newPassword")


class AccountIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    display_name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=100)] = Field(
        alias="displayName"
    )
    display: Optional[bool] = None
    intro: Optional[Annotated[str, StringConstraints(max_length=1000)]] = None


class AccountOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    display_name: str = Field(serialization_alias="displayName")
    display: bool = False
    intro: Optional[str] = None


class ContributorsOut(BaseModel):
    contributors: List[str]


class TurnstileIn(BaseModel):
    token: Optional[str] = None


class TurnstileOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    error: Optional[str] = None
    error_codes: Optional[List[str]] = Field(default=None, serialization_alias="errorCodes")


class RevalidateOut(BaseModel):
    message: str
    invalidated: List[str]
    timestamp: datetime
