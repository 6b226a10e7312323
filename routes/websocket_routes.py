# WebSocket routes for live scan progress
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, Query
import logging
from config.database import get_database
from schemas.scan import ScanProgress
from utils.jwt import decode_access_token

router = APIRouter(tags=['WebSocket'])
logger = logging.getLogger(__name__)


@router.websocket('/ws/scans/{scan_id}')
async def scan_progress_socket(
    websocket: WebSocket,
    scan_id: str,
    token: str = Query(...),
    db = Depends(get_database)
):
    """
    Stream progress of one scan.
    Connect with: ws://host/api/ws/scans/<scan_id>?token=<jwt_token>

    The socket becomes the scan's single progress subscriber until it closes.
    Clients that reconnect after a restart should poll GET /api/scans/<scan_id>.
    """
    token_data = decode_access_token(token)
    if token_data is None:
        await websocket.close(code=4001, reason='Invalid token')
        return

    scan = await db.scans.find_one({'id': scan_id}, {'_id': 0, 'project_id': 1})
    project = None
    if scan:
        project = await db.projects.find_one({'id': scan['project_id'], 'user_id': token_data.user_id})
    if not project:
        await websocket.close(code=4004, reason='Scan not found')
        return

    engine = websocket.app.state.analysis_engine
    await websocket.accept()

    async def forward(update: ScanProgress):
        await websocket.send_json({'type': 'progress', **update.model_dump(mode='json')})

    engine.on_progress(scan_id, forward)
    try:
        await websocket.send_json({'type': 'connected', 'scan_id': scan_id})
        while True:
            try:
                data = await websocket.receive_json()
                if data.get('type') == 'ping':
                    await websocket.send_json({'type': 'pong'})
            except WebSocketDisconnect:
                break
            except Exception as e:
                logger.error(f'WebSocket receive error: {e}')
                break
    finally:
        if engine.registry.get(scan_id) is forward:
            engine.off_progress(scan_id)
        logger.info(f'Progress socket closed for scan {scan_id}')
