"""
Sprite Slicer - cut a spritesheet grid into frames, preview the animation,
and export it as a looping GIF or a ZIP of PNG slices
"""

__version__ = "1.0.0"
