"""
외부 스케줄러용 드리프트 스윕 트리거.

cron 한 번 = 스윕 한 번. 예) 15초 간격을 위해 cron 에서 sleep 오프셋을 두고 4번 등록:
    * * * * * python scripts/trigger_drift_sweep.py
    * * * * * sleep 15; python scripts/trigger_drift_sweep.py
"""

import argparse
import asyncio
import json
import os
import sys

import aiohttp
from dotenv import load_dotenv

load_dotenv()


async def trigger(base_url: str, token: str, timeout: float) -> int:
    url = f"{base_url.rstrip('/')}/api/v1/monitor/sweep"
    headers = {"Authorization": f"Bearer {token}"}
    async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout)) as session:
        async with session.post(url, headers=headers) as response:
            body = await response.text()
            print(f"[{response.status}] {body}")
            if response.status != 200:
                return 1
            report = json.loads(body)
            return 0 if report.get("success") else 1


def main() -> int:
    parser = argparse.ArgumentParser(description="Trigger one drift monitor sweep")
    parser.add_argument("--base-url", default=os.getenv("BACKEND_PUBLIC_URL", "http://127.0.0.1:8000"))
    parser.add_argument("--timeout", type=float, default=15.0)
    args = parser.parse_args()

    token = os.getenv("MONITOR_CRON_TOKEN")
    if not token:
        print("MONITOR_CRON_TOKEN is not set", file=sys.stderr)
        return 2

    try:
        return asyncio.run(trigger(args.base_url, token, args.timeout))
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        print(f"Sweep trigger failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
