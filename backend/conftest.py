"""
Pytest configuration file for backend testing.
"""
import os
import sys
from pathlib import Path

# Tests run against an in-memory database with no background scheduler
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("KITCHEN_SWEEP_ENABLED", "false")

# Add the backend directory to Python path so imports work correctly
backend_dir = Path(__file__).parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))
