from fastapi import FastAPI, APIRouter
from dotenv import load_dotenv
from starlette.middleware.cors import CORSMiddleware
import os
import logging
from pathlib import Path

from bootstrap import run_bootstrap
from routers.admin_auth import router as admin_auth_router
from routers.admin_bets import router as admin_bets_router
from routers.admin_confirmation import router as admin_confirmation_router
from routers.admin_events import router as admin_events_router
from routers.admin_participants import router as admin_participants_router
from routers.admin_verification import router as admin_verification_router
from routers.participant import router as participant_router

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

app = FastAPI(title="Fest Registrations API", version="1.0.0")
api_router = APIRouter(prefix="/api")


@app.on_event("startup")
async def startup_event():
    run_bootstrap()
    logger.info("Schema ready; replacement mode %s", os.environ.get("REPLACEMENT_MODE", "strict"))


@api_router.get("/health")
async def health_check():
    return {"status": "healthy"}


api_router.include_router(admin_auth_router)
api_router.include_router(admin_events_router)
api_router.include_router(admin_confirmation_router)
api_router.include_router(admin_verification_router)
api_router.include_router(admin_bets_router)
api_router.include_router(admin_participants_router)
api_router.include_router(participant_router)

# Include router and add middleware
app.include_router(api_router)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=os.environ.get('CORS_ORIGINS', '*').split(','),
    allow_methods=["*"],
    allow_headers=["*"],
)
