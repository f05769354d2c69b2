"""FigureLab backend - the scene editor store and its FastAPI surface."""

from .scene_editor import DocumentLoadError, SceneEditor

__all__ = ["DocumentLoadError", "SceneEditor"]
