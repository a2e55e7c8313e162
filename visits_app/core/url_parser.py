import logging
from typing import List

logger = logging.getLogger(__name__)


class URLParser:
    def parse_url_list(self, raw_value: str, name: str) -> List[str]:
        origins = [v.strip().rstrip("/") for v in raw_value.split(",") if v.strip()]

        allowed = [o for o in origins if o.startswith(("http://", "https://"))]

        if origins and not allowed:
            logger.warning("No valid origins found in %s", name)

        return allowed


parser = URLParser()
