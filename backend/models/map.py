from pydantic import BaseModel
from typing import List

from models.post import PostResponse


class MapPin(PostResponse):
    offset_x: float = 0.0
    offset_y: float = 0.0
    opacity: float = 1.0


class MapCluster(BaseModel):
    latitude: float
    longitude: float
    count: int
    post_ids: List[str]


class BoundingBox(BaseModel):
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float


class MapResponse(BaseModel):
    display_mode: str  # near | mid | far
    span: float
    bbox: BoundingBox
    fetched: int
    pins: List[MapPin]
    clusters: List[MapCluster]
