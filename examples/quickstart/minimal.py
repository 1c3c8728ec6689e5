"""
Example: Minimal Quickstart
Description: The simplest possible pdcall example - one request and one paginated fetch
Use case: Learning the basics, quick testing

This example demonstrates:
- Building a credential from the environment
- Executing a single request
- Fetching a whole collection
- Checking success and failure
"""

import asyncio
import os

from dotenv import load_dotenv

from pdcall import Credential, CredentialKind, PagerDutyClient, RequestSpec

load_dotenv()


async def main() -> None:
    # 1. Build the credential (OAuth token, or a legacy REST API key)
    credential = Credential(
        token=os.getenv("PAGERDUTY_TOKEN", ""),
        kind=CredentialKind(os.getenv("PAGERDUTY_TOKEN_KIND", "legacy")),
    )

    async with PagerDutyClient(credential) as pd:
        # 2. One request
        r = await pd.execute(RequestSpec("abilities"))
        if r.is_failure:
            print(f"Request failed: {r.formatted_error()}")
            return
        print(f"Account abilities: {', '.join(r.data['abilities'][:5])}...")

        # 3. A whole collection, capped at 100 items
        teams = await pd.fetch_all("teams", item_limit=100)
        if teams.is_failure:
            print(f"Couldn't list teams: {teams.formatted_error()}")
            return
        for team in teams.data:
            print(f"{team['id']}  {team['name']}")


if __name__ == "__main__":
    asyncio.run(main())
