import os
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.routers import tug_realtime

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="TUG Realtime API",
    description="카메라 포즈 추정 기반 실시간 TUG(Timed Up and Go) 검사",
    version="1.0.0"
)

# Attach rate limiter
app.state.limiter = tug_realtime.limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS 설정
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# 라우터 등록
app.include_router(tug_realtime.router, tags=["tug-realtime"])


@app.get("/")
async def root():
    return {"message": "TUG Realtime API", "version": "1.0.0"}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
