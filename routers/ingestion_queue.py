import logging
from fastapi import APIRouter, HTTPException, Depends, Response
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from dataclasses import asdict
from dependencies import GlobalStateManager, get_global_state
from services.ingestion_queue_manager import IngestionQueueManager

router = APIRouter(
    prefix="/api/internal/ingestion-queue",
    tags=["ingestion_queue"]
)

QUEUE_TYPES = ("active", "failed")

def get_queue_manager(state: GlobalStateManager = Depends(get_global_state)) -> IngestionQueueManager:
    manager = state.ingestion_queue_manager
    if not manager:
        raise HTTPException(status_code=503, detail="Ingestion Queue Manager not initialized.")
    return manager

def _check_queue_type(queue_type: str):
    if queue_type not in QUEUE_TYPES:
        raise HTTPException(status_code=400, detail="Invalid queue type. Must be 'active' or 'failed'.")

@router.get("/status")
async def get_queue_status(manager: IngestionQueueManager = Depends(get_queue_manager)):
    """
    Counts of waiting, delayed, active, completed and failed tasks.
    """
    try:
        return await manager.get_status()
    except Exception as e:
        logging.error(f"API: Error getting ingestion queue status: {e}")
        raise HTTPException(status_code=500, detail="Failed to get queue status.")

@router.get("/pending-jobs")
async def get_pending_jobs(state: GlobalStateManager = Depends(get_global_state)):
    """
    Videos still waiting for the user to confirm their destination.
    """
    jobs = [asdict(job) for job in state.pending_job_store.list_jobs()]
    return JSONResponse(content=jsonable_encoder(jobs))

@router.post("/clear")
async def clear_queue(manager: IngestionQueueManager = Depends(get_queue_manager)):
    try:
        deleted = await manager.clear_active()
        return {"message": "Queue cleared successfully", "deleted": deleted}
    except Exception as e:
        logging.error(f"API: Error clearing ingestion queue: {e}")
        raise HTTPException(status_code=500, detail="Failed to clear queue.")

@router.get("/{queue_type}")
async def get_queue_tasks(queue_type: str, manager: IngestionQueueManager = Depends(get_queue_manager)):
    """
    Get tasks from the active or failed queue.
    """
    _check_queue_type(queue_type)
    try:
        tasks = await manager.get_tasks(queue_type)
        return JSONResponse(content=jsonable_encoder(tasks))
    except Exception as e:
        logging.error(f"API: Error getting ingestion queue {queue_type}: {e}")
        raise HTTPException(status_code=500, detail="Failed to get queue items.")

@router.delete("/{queue_type}/{task_id}")
async def delete_queue_task(queue_type: str, task_id: str, manager: IngestionQueueManager = Depends(get_queue_manager)):
    """
    Delete a specific task from the queue.
    """
    _check_queue_type(queue_type)
    try:
        deleted = await manager.delete_task(queue_type, task_id)
    except Exception as e:
        logging.error(f"API: Error deleting task {task_id} from {queue_type}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete item.")
    if not deleted:
        return JSONResponse(status_code=404, content={"detail": "Task not found."})
    return Response(status_code=204)
