# Code Audit API Server
from fastapi import FastAPI, APIRouter
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from config import get_settings, Database
from routes import scan_router, websocket_router
from services.scan_service import AnalysisEngine

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

settings = get_settings()

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    await Database.connect_db()
    app.state.analysis_engine = AnalysisEngine(Database.get_db(), settings)
    logger.info('Application started')
    yield
    # Shutdown
    app.state.analysis_engine.registry.clear()
    await Database.close_db()
    logger.info('Application shutdown')

app = FastAPI(
    title='Code Audit API',
    description='Static analysis scan pipeline for uploaded projects',
    version='1.0.0',
    lifespan=lifespan
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins.split(','),
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

# API Router
api_router = APIRouter(prefix='/api')
api_router.include_router(scan_router)
api_router.include_router(websocket_router)
app.include_router(api_router)

@app.get('/')
async def root():
    return {'message': 'Code Audit API v1.0.0', 'status': 'operational'}

@app.get('/health')
async def health():
    return {'status': 'healthy'}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("server:app", reload=True)
