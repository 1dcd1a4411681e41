#!/usr/bin/env python3
"""
Convenience entry point for RSS Downloader when running from a source checkout.

    python run.py -c config.json
"""
import sys
from pathlib import Path

# Ensure the project root is in the Python path
project_root = Path(__file__).resolve().parent
sys.path.append(str(project_root))

from rss_downloader.main import main

if __name__ == "__main__":
    main()
