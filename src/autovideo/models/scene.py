"""Scene data model."""

from typing import Optional

from pydantic import BaseModel, Field


class SceneDraft(BaseModel):
    """A storyboard record as returned by decomposition, before indexing."""

    description: str = Field(..., description="Image generation prompt", min_length=1)
    subtitle: str = Field(..., description="Narrated and displayed line")
    duration: float = Field(..., description="Segment duration in seconds", gt=0)

    model_config = {"frozen": True}


class Scene(BaseModel):
    """One storyboard unit of the slideshow."""

    index: int = Field(..., description="Position in the storyboard", ge=0)
    description: str = Field(..., description="Image generation prompt")
    subtitle: str = Field(..., description="Narrated and displayed line")
    duration: float = Field(..., description="Segment duration in seconds", gt=0)
    image_path: Optional[str] = Field(None, description="Generated or reused image file")

    @property
    def has_image(self) -> bool:
        return self.image_path is not None

    def attach_image(self, path: str) -> None:
        """Record the scene's image. An image path is set at most once."""
        if self.image_path is not None and self.image_path != path:
            raise ValueError(
                f"Scene {self.index} already has image {self.image_path}; refusing {path}"
            )
        self.image_path = path
