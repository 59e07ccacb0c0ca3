import os, sys
import warnings
from pathlib import Path

# Add the src/ tree to sys.path so tests run without an editable install
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

# Keep configuration deterministic regardless of the developer's .env
os.environ.setdefault("DISCORD_API_TOKEN", "test-token")
os.environ.setdefault("SQL_DB_PATH", ":memory:")
os.environ.setdefault("STATE_TTL_SECONDS", "900")
os.environ.setdefault("RATE_LIMIT_TIMEOUT", "20")

# Silence deprecation warnings surfaced from third-party dependencies during tests
warnings.filterwarnings(
    "ignore", category=DeprecationWarning, module=r"^discord\\.player$"
)
warnings.filterwarnings("ignore", "'audioop' is deprecated", DeprecationWarning)


def pytest_configure(config):
    warnings.filterwarnings(
        "ignore", category=DeprecationWarning, module=r"^discord\\.player$"
    )
    warnings.filterwarnings("ignore", "'audioop' is deprecated", DeprecationWarning)
