from fastapi import APIRouter, Depends

from mindship.api import deps
from mindship.schemas.monitor import SweepReport
from mindship.services.monitor import DriftMonitor

router = APIRouter()


# --------------------------------------------------------------------------
# 드리프트 모니터 스윕 1회 (POST /api/v1/monitor/sweep)
# 외부 스케줄러가 15초마다 호출. 호출마다 DB 상태를 새로 읽는 무상태 실행입니다.
# --------------------------------------------------------------------------
@router.post("/sweep", response_model=SweepReport, dependencies=[Depends(deps.verify_cron_token)])
async def run_sweep(monitor: DriftMonitor = Depends(deps.get_monitor)):
    return await monitor.sweep()
