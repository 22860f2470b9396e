"""
Entry point for the Tistory to WordPress migration tool.
"""

import sys

from blog_migrator.cli import main

if __name__ == "__main__":
    sys.exit(main())
