"""
Startup configuration validation module.

This module provides startup-time validation for critical configuration
to catch misconfigurations early (fail-fast) rather than on the first
booking request.

Usage:
    from shared.startup_validator import validate_startup_config, StartupValidationError

    async def main():
        try:
            await validate_startup_config(redis_client)
        except StartupValidationError as e:
            logger.critical(f"Startup blocked: {e}")
            sys.exit(1)
"""

import logging

from redis.exceptions import RedisError

from shared.config import get_settings

logger = logging.getLogger(__name__)

ASYNC_DATABASE_DRIVERS = ("postgresql+asyncpg://", "mysql+aiomysql://", "mysql+asyncmy://")
DEFAULT_DATABASE_PASSWORD = ":changeme@"


class StartupValidationError(Exception):
    """Raised when critical startup validation fails."""

    pass


async def validate_startup_config(redis_client=None) -> dict[str, bool]:
    """
    Validate all critical configuration at startup.

    Performs tiered validation:
    - TIER 1 (CRITICAL): Block startup if any fail
    - TIER 2 (IMPORTANT): Warn but allow startup

    Args:
        redis_client: Optional Redis client to ping. Redis is optional at
                      runtime, so an unreachable Redis only warns.

    Returns:
        dict of {check_name: passed} for all validations

    Raises:
        StartupValidationError: If any CRITICAL check fails
    """
    # Imported here: the executor module itself reads settings
    from parking.transactions.executor import IsolationLevel

    settings = get_settings()
    results: dict[str, bool] = {}
    critical_failures: list[str] = []

    # =========================================================================
    # TIER 1: CRITICAL (block startup if any fail)
    # =========================================================================

    # 1. Database URL must use an async driver
    if not settings.DATABASE_URL.startswith(ASYNC_DATABASE_DRIVERS):
        critical_failures.append(
            "DATABASE_URL must use an async driver, e.g. postgresql+asyncpg://..."
        )
        results["database_url_driver"] = False
    else:
        results["database_url_driver"] = True
        logger.info("  [OK] Database URL uses an async driver")

    # 2. Isolation level must be a known level
    try:
        level = IsolationLevel.parse(settings.TRANSACTION_ISOLATION_LEVEL)
        results["isolation_level"] = True
        logger.info(f"  [OK] Transaction isolation level: {level.value}")
    except ValueError as e:
        critical_failures.append(str(e))
        results["isolation_level"] = False

    # 3. Retry settings must be usable
    retry_problems = []
    if settings.TRANSACTION_MAX_RETRIES < 1:
        retry_problems.append("TRANSACTION_MAX_RETRIES must be >= 1")
    if settings.TRANSACTION_RETRY_DELAY_MS < 0:
        retry_problems.append("TRANSACTION_RETRY_DELAY_MS must be >= 0")
    if settings.TRANSACTION_TIMEOUT_MS <= 0:
        retry_problems.append("TRANSACTION_TIMEOUT_MS must be > 0")
    if settings.REPORT_SPOT_SAMPLE_SIZE < 0:
        retry_problems.append("REPORT_SPOT_SAMPLE_SIZE must be >= 0")
    critical_failures.extend(retry_problems)
    results["transaction_settings"] = not retry_problems
    if not retry_problems:
        logger.info(
            f"  [OK] Transactions: max_retries={settings.TRANSACTION_MAX_RETRIES}, "
            f"retry_delay={settings.TRANSACTION_RETRY_DELAY_MS}ms, "
            f"timeout={settings.TRANSACTION_TIMEOUT_MS}ms"
        )

    # =========================================================================
    # TIER 2: IMPORTANT (warn but allow startup)
    # =========================================================================

    # 4. Redis reachable (cache degrades to misses otherwise)
    if redis_client is not None:
        try:
            await redis_client.ping()
            results["redis_reachable"] = True
            logger.info("  [OK] Redis reachable")
        except (RedisError, OSError) as e:
            logger.warning(f"  [WARN] Redis unreachable, cache disabled until it returns: {e}")
            results["redis_reachable"] = False

    # 5. Default database credentials outside development
    if settings.ENVIRONMENT != "development" and DEFAULT_DATABASE_PASSWORD in settings.DATABASE_URL:
        logger.warning(
            f"DATABASE_URL uses the default password in {settings.ENVIRONMENT} - change it"
        )
        results["database_credentials"] = False
    else:
        results["database_credentials"] = True

    # =========================================================================
    # Summary and result
    # =========================================================================

    passed = sum(1 for v in results.values() if v)
    total = len(results)
    logger.info(f"Startup validation: {passed}/{total} checks passed")

    if critical_failures:
        logger.critical("=" * 60)
        logger.critical("STARTUP BLOCKED - Critical configuration errors:")
        for i, failure in enumerate(critical_failures, 1):
            logger.critical(f"  {i}. {failure}")
        logger.critical("=" * 60)
        raise StartupValidationError(
            f"Critical startup validation failed ({len(critical_failures)} errors): "
            f"{'; '.join(critical_failures)}"
        )

    return results
