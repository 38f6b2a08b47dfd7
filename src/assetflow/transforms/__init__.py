from .registry import (
    BUILTIN_TRANSFORMS,
    FileTransform,
    Transform,
    TransformRegistry,
    default_registry,
)

__all__ = ["BUILTIN_TRANSFORMS", "FileTransform", "Transform", "TransformRegistry", "default_registry"]
