#!/usr/bin/env python3
"""
Main entry point for the IRC channel logger
"""

from chanlogger.main import run

if __name__ == "__main__":
    run()
