"""健康检查路由

GET /health: Liveness 检查，永远返回 200。
GET /ready: Readiness 检查，包含 SQLite 连通性、数据库目录、磁盘空间。
"""

import shutil
from pathlib import Path

from chatline.core.config import get_db_path
from chatline.core.store.sqlite_init import verify_wal_mode
from fastapi import APIRouter, Request
from starlette.responses import JSONResponse

router = APIRouter()


@router.get("/health")
async def health():
    """Liveness 检查 -- 永远返回 200"""
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request):
    """Readiness 检查 -- 验证核心依赖可用性

    检查项：
    1. sqlite: 数据库连通性与 WAL 模式
    2. db_dir: 数据库所在目录可访问
    3. disk_space_mb: 磁盘剩余空间
    4. push_hub: 推送频道已初始化
    """
    checks = {}
    all_ok = True

    # 1. SQLite 连通性检查
    try:
        store_group = request.app.state.store_group
        cursor = await store_group.conn.execute("SELECT 1")
        await cursor.fetchone()
        if await verify_wal_mode(store_group.conn):
            checks["sqlite"] = "ok"
        else:
            checks["sqlite"] = "error: journal_mode is not WAL"
            all_ok = False
    except Exception as e:
        checks["sqlite"] = f"error: {str(e)}"
        all_ok = False

    # 2. 数据库目录检查
    db_dir = Path(get_db_path()).parent
    if db_dir.exists() and db_dir.is_dir():
        checks["db_dir"] = "ok"
    else:
        checks["db_dir"] = "error: directory does not exist"
        all_ok = False

    # 3. 磁盘空间检查
    try:
        disk_usage = shutil.disk_usage(db_dir if db_dir.exists() else "/")
        checks["disk_space_mb"] = disk_usage.free // (1024 * 1024)
    except OSError:
        checks["disk_space_mb"] = 0
        all_ok = False

    # 4. PushHub
    if getattr(request.app.state, "push_hub", None) is not None:
        checks["push_hub"] = "ok"
    else:
        checks["push_hub"] = "error: not initialized"
        all_ok = False

    status_code = 200 if all_ok else 503
    return JSONResponse(
        status_code=status_code,
        content={
            "status": "ready" if all_ok else "not_ready",
            "checks": checks,
        },
    )
