"""
image-annotation - Shape and text annotation overlay for displayed images.

This package contains the annotation core:
- editor: Annotation entities, coordinate transforms, controller and painting
- services: Application services (config, logging, image size resolution)
"""

__version__ = "0.1.0"
