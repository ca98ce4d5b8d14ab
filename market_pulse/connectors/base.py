from __future__ import annotations

from typing import Any, Dict, List


class VenueConnector:
    source_name: str = "unknown"

    def fetch_raw(self) -> List[Dict[str, Any]]:
        raise NotImplementedError
