from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

DEFAULT_WIDTH = 1000
DEFAULT_HEIGHT = 800


class GalleryImage(BaseModel):
    src: str = Field(min_length=1)
    width: int = Field(default=DEFAULT_WIDTH, gt=0)
    height: int = Field(default=DEFAULT_HEIGHT, gt=0)

    def as_dict(self) -> Dict[str, Any]:
        return {"src": self.src, "width": self.width, "height": self.height}


class DeleteImageRequest(BaseModel):
    # Optional so missing fields surface as the handler's own messages, not a 422
    src: Optional[str] = None
    category: Optional[str] = None
