from .place_images import PlaceImagesRepository
from . import models

__all__ = ["PlaceImagesRepository", "models"]
