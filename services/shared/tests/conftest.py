import os
import sys
from pathlib import Path

# services/ holds the ``shared`` package
SERVICES_DIR = Path(__file__).resolve().parents[2]
if str(SERVICES_DIR) not in sys.path:
    sys.path.insert(0, str(SERVICES_DIR))

# the stores under test get mocked Redis clients, never a live server
os.environ["REDIS_URL"] = ""
os.environ.pop("STORAGE_CHANNEL", None)
