"""
Entry point for running the parser as a module: python -m exam_parser
"""

import sys

from exam_parser.cli import main

if __name__ == "__main__":
    sys.exit(main())
