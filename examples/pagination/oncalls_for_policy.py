"""
Example: On-calls for an escalation policy
Description: Page through the oncalls collection filtered by escalation policy
Use case: Listing endpoints with array filters and date ranges
"""

import asyncio
import os
from datetime import datetime, timedelta, timezone

from dotenv import load_dotenv

from pdcall import Credential, CredentialKind, PagerDutyClient

load_dotenv()


async def main() -> None:
    credential = Credential(
        token=os.getenv("PAGERDUTY_TOKEN", ""),
        kind=CredentialKind(os.getenv("PAGERDUTY_TOKEN_KIND", "legacy")),
    )

    async with PagerDutyClient(credential) as pd:
        ep = await pd.ep_id_for_name(os.getenv("PAGERDUTY_EP_NAME", "Default"))
        if ep.is_failure or ep.data is None:
            print("Escalation policy not found")
            return

        now = datetime.now(timezone.utc)
        oncalls = await pd.fetch_all(
            "oncalls",
            params={
                "escalation_policy_ids[]": [ep.data],
                "since": now.isoformat(),
                "until": (now + timedelta(days=7)).isoformat(),
            },
        )
        if oncalls.is_failure:
            print(f"Couldn't get on-calls: {oncalls.formatted_error()}")
            return

        for oncall in oncalls.data:
            schedule = (oncall.get("schedule") or {}).get("summary", "")
            print(f"Level {oncall['escalation_level']}: {oncall['user']['summary']} {schedule}")


if __name__ == "__main__":
    asyncio.run(main())
