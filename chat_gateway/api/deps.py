from typing import Annotated, Optional

import httpx
from fastapi import Depends


def get_upstream_transport() -> Optional[httpx.AsyncBaseTransport]:
    """Transport for upstream calls. None uses the real network."""
    return None


TransportDep = Annotated[Optional[httpx.AsyncBaseTransport], Depends(get_upstream_transport)]
