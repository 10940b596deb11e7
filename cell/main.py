from __future__ import annotations

import asyncio
import logging

from cell.config import CELL_CONFIG, load_config
from cell.core import CellClient, CellRequest, CellResponse


async def echo(request: CellRequest) -> CellResponse:
    """Reply with a description of the request, handy for smoke-testing a queen."""
    lines = [f"{request.method} {request.path}"]
    for name, values in sorted(request.query.items()):
        lines.append(f"query {name}={','.join(values)}")
    lines.append(f"body {len(request.body)} bytes")
    return CellResponse.text("\n".join(lines) + "\n")


async def run_cell() -> None:
    load_config()
    logging.basicConfig(level=CELL_CONFIG["log_level"])
    client = CellClient(echo)
    await client.connect()
    try:
        await client.wait_closed()
    finally:
        await client.close()


def main() -> None:
    asyncio.run(run_cell())


if __name__ == "__main__":
    main()
