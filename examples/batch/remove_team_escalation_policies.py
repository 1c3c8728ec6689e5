"""
Example: Remove escalation policies from teams
Description: Resolve names to ids, then send one DELETE per (team, policy) pair concurrently
Use case: Bulk changes that must report partial failure without stopping

This example demonstrates:
- Name lookups with exact matching
- Validating ids before building requests
- Running a batch under a concurrency ceiling
- Reporting failed indices
"""

import asyncio
import os
import sys

from dotenv import load_dotenv

from pdcall import (
    Credential,
    CredentialKind,
    PagerDutyClient,
    RateLimitConfig,
    RequestSpec,
    invalid_pagerduty_ids,
    setup_logger,
)

load_dotenv()

# PagerDuty's REST API allows 960 requests per minute per token
RPM = 960

TEAM_NAMES = ["Ops", "Platform"]
ESCALATION_POLICY_IDS = ["PABC123", "PDEF456"]


async def main() -> None:
    setup_logger("INFO")

    invalid = invalid_pagerduty_ids(ESCALATION_POLICY_IDS)
    if invalid:
        sys.exit(f"Invalid escalation policy IDs: {', '.join(invalid)}")

    credential = Credential(
        token=os.getenv("PAGERDUTY_TOKEN", ""),
        kind=CredentialKind(os.getenv("PAGERDUTY_TOKEN_KIND", "legacy")),
    )

    async with PagerDutyClient(
        credential, rate_limit=RateLimitConfig(max_requests_per_minute=RPM * 0.8)
    ) as pd:
        team_ids = []
        for name in TEAM_NAMES:
            r = await pd.team_id_for_name(name)
            if r.is_failure:
                sys.exit(f"Couldn't look up team {name}: {r.formatted_error()}")
            if r.data is None:
                sys.exit(f"No team was found with the name {name}")
            team_ids.append(r.data)

        requests = [
            RequestSpec(f"teams/{team_id}/escalation_policies/{ep_id}", method="DELETE")
            for team_id in team_ids
            for ep_id in ESCALATION_POLICY_IDS
        ]

        batch = await pd.run_batch(requests, concurrency=10, show_progress=True)

        for index in batch.failed_indices():
            _, team_id, _, ep_id = requests[index].endpoint.split("/")
            print(
                f"Failed to remove EP {ep_id} from team {team_id}: "
                f"{batch.result_at(index).formatted_error()}",
                file=sys.stderr,
            )


if __name__ == "__main__":
    asyncio.run(main())
