#!/usr/bin/env python3
"""
Dealer Finder
Main entry point for the dealer ingestion pipeline.
"""

from dealerfinder.cli import main

if __name__ == "__main__":
    main()
