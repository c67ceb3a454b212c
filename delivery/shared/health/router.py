from fastapi import APIRouter, Depends

from delivery.config.dependencies import get_health_checker
from delivery.shared.health.health_check import HealthChecker

health_router = APIRouter(prefix="/health", tags=["health"])


@health_router.get("", summary="Check all services")
async def check_all_services(checker: HealthChecker = Depends(get_health_checker)):
    """
    Run health checks for all backing services.
    Returns JSON with each service's health and a summary.
    """
    return await checker.run_all()


@health_router.get("/redis", summary="Check Redis")
async def check_redis(checker: HealthChecker = Depends(get_health_checker)):
    return {"redis": await checker.check_redis()}


@health_router.get("/kafka", summary="Check Kafka")
async def check_kafka(checker: HealthChecker = Depends(get_health_checker)):
    return {"kafka": await checker.check_kafka()}
