"""Allow running as: python -m calabi

Usage:
  python -m calabi                   # run updater + scanner until a fatal error
  python -m calabi --check-status    # print the current GitHub status and exit
"""

from calabi.main import main

main()
