from __future__ import annotations

# bumped whenever a change to the engine alters forecast output
ENGINE_VERSION = "trendcast-engine-3.1.0"

DATE_KEY = "date"
