#!/usr/bin/env python3
"""
Celery worker health check script.

Uses a Redis connectivity check instead of worker ping: inspect.ping() times
out while the worker is busy publishing, falsely marking it unhealthy.

Health check passes if:
1. Redis (the broker) is reachable
2. The celery worker process is running
"""
import subprocess
import sys

import redis

from code_deployer.core.config import settings


def check_redis() -> bool:
    """Check if Redis broker is reachable."""
    try:
        client = redis.from_url(settings.REDIS_URL, socket_timeout=5)
        client.ping()
        return True
    except redis.RedisError as e:
        print(f"Redis check failed: {e}", file=sys.stderr)
        return False


def check_celery_process() -> bool:
    """Check if a celery worker process is running."""
    try:
        result = subprocess.run(
            ["pgrep", "-f", "celery.*worker"],
            capture_output=True,
            timeout=5
        )
        return result.returncode == 0
    except FileNotFoundError:
        # pgrep not available, skip this check
        return True
    except subprocess.SubprocessError as e:
        print(f"Process check failed: {e}", file=sys.stderr)
        return True


def main() -> int:
    if not check_redis():
        return 1
    if not check_celery_process():
        print("Celery process not found", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
