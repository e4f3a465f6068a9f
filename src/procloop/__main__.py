"""procloop entry point.

Supports: python -m procloop
"""

from .cli import main

if __name__ == "__main__":
    main()
