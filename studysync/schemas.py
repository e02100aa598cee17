from pydantic import BaseModel
from typing import Optional


class StageNotification(BaseModel):
    location: str
    video_name: str = ""
    uuid: str


class UuidLookupRequest(BaseModel):
    name: str


class UuidLookupResponse(BaseModel):
    uuid: str


class IceServer(BaseModel):
    urls: str
    username: Optional[str] = None
    credential: Optional[str] = None


class ClientConfig(BaseModel):
    peerjs_host: str
    peerjs_path: str
    host_peer_id: str
    ice_servers: list[IceServer]
    survey_url: str


class StudyWindowOut(BaseModel):
    open: bool
    message: str


class HealthOut(BaseModel):
    status: str
    participants: int
    pending_sends: int
