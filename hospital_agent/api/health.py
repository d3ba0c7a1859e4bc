from fastapi import APIRouter

from hospital_agent.database import check_connection

router = APIRouter()


@router.get("/health")
async def health():
    return {"success": True, "message": "Server is running"}


@router.get("/health/db")
async def database_health():
    is_connected, db_status = await check_connection()

    return {
        "success": is_connected,
        "message": "Database reachable" if is_connected else "Database unreachable",
        "data": {"database": db_status},
    }
