"""Smoke test: one user, ten iterations, to verify the target answers at all.

    conduitload run smoke
"""

from __future__ import annotations

from conduitload import SetupData, VirtualUser, iteration, scenario


@scenario(
    name="smoke",
    title="Smoke Test",
    description="Single user sanity check",
    purpose="Verify connectivity before heavier runs",
    users_summary="1",
    iterations=10,
    thresholds={"http_req_failed": ["rate<0.1"]},
    tags={"testType": "smoke", "environment": "demo"},
    think_time=(0.0, 0.0),
)
class SmokeTest:
    """Single user sanity check."""

    @iteration
    async def run(self, vu: VirtualUser, data: SetupData) -> None:
        await vu.api.fetch_articles(10, 0)
        await vu.pause(1)
