"""
Sprite Slicer - spritesheet to GIF & slices
Run with: python main.py [spritesheet.png] [--debug]
"""

import sys

from sprite_slicer.app import main


if __name__ == "__main__":
    sys.exit(main())
