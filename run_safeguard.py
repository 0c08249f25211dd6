#!/usr/bin/env python3
"""
SafeGuard alerting engine launcher

Usage:
    python run_safeguard.py run [--model PATH] [--motion-csv FILE]
    python run_safeguard.py replay recording.csv [--speed 4]
    python run_safeguard.py benchmark [--model PATH]
"""

from safeguard.main import main

if __name__ == "__main__":
    main()
