"""Domain entities shared by the pipeline, the metadata store and the API."""

from tubely.domain.video import VideoLocator, VideoRecord

__all__ = ["VideoLocator", "VideoRecord"]
