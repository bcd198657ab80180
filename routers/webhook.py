import logging
from typing import Dict

from fastapi import APIRouter, Depends, Request

from dependencies import GlobalStateManager, get_global_state
from infrastructure.webhook_events import decode_update

router = APIRouter(tags=["webhook"])

@router.post("/webhook")
async def handle_webhook(request: Request, state: GlobalStateManager = Depends(get_global_state)) -> Dict[str, str]:
    """
    Receives a Telegram update. Always answers 200 {"status": "ok"}; failures are
    logged and, where possible, reported to the user in chat.
    """
    try:
        update = await request.json()
        event = decode_update(update)
        service = state.path_confirmation_service
        if service is None:
            logging.error("WEBHOOK: Confirmation service not initialized, dropping update.")
        else:
            await service.dispatch(event)
    except Exception:
        logging.exception("WEBHOOK: Error handling update")
    return {"status": "ok"}
