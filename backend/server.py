from fastapi import FastAPI, APIRouter
from dotenv import load_dotenv
from starlette.middleware.cors import CORSMiddleware
from pathlib import Path
import os
import logging

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

from bootstrap import run_bootstrap  # noqa: E402
from routers import auth_viewer, event_admin, events, judge, public, superadmin  # noqa: E402

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

app = FastAPI(title="HackHub API", version="1.0.0")
api_router = APIRouter(prefix="/api")

api_router.include_router(public.router)
api_router.include_router(auth_viewer.router)
api_router.include_router(events.router)
api_router.include_router(judge.router)
api_router.include_router(event_admin.router)
api_router.include_router(superadmin.router)


# ==================== STARTUP ====================
@app.on_event("startup")
async def startup_event():
    run_bootstrap()
    logger.info("HackHub API started")


# Include router and add middleware
app.include_router(api_router)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=os.environ.get('CORS_ORIGINS', '*').split(','),
    allow_methods=["*"],
    allow_headers=["*"],
)
