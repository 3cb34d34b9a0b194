from fastapi import APIRouter, Depends, HTTPException

from mindship.api import deps
from mindship.crud import sessions as session_crud
from mindship.schemas.monitor import InterventionResult, InterventionTestRequest
from mindship.services.intervention import InterventionDispatcher

router = APIRouter()


# --------------------------------------------------------------------------
# 테스트 개입 (POST /api/v1/interventions/{session_id}/test)
# 실제 드리프트 없이 개입 파이프라인을 돌려봅니다. 기록/플래그는 건드리지 않습니다.
# --------------------------------------------------------------------------
@router.post("/{session_id}/test", response_model=InterventionResult)
async def test_intervention(
    session_id: str,
    body: InterventionTestRequest,
    user_id: str = Depends(deps.get_current_user_id),
    dispatcher: InterventionDispatcher = Depends(deps.get_dispatcher),
):
    session = await session_crud.get_session(session_id)
    if not session or session.user_id != user_id:
        raise HTTPException(status_code=404, detail="Session not found")

    return await dispatcher.dispatch(
        session_id=session.id,
        user_id=user_id,
        consecutive_drifts=body.consecutive_drifts,
        test_mode=True,
    )
