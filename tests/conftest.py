import sys
import os
from pathlib import Path

# Ensure project root is on sys.path for `import compass.*`
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Default: offline providers unless a test opts in
os.environ.setdefault("AI_PROVIDER_CHAT", "mock")
os.environ.setdefault("COMPASS_ITEMS_PROVIDER", "mock")
