"""Image customization steps and pipeline."""

from imagecustomizer.customize.pipeline import (
    CustomizationPipeline,
    CustomizationStep,
    PipelineState,
    do_customizations,
)

__all__ = [
    "CustomizationPipeline",
    "CustomizationStep",
    "PipelineState",
    "do_customizations",
]
