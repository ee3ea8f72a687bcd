from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .core.config import settings
from .core.log import configure_logging
from .api.routes import imports, stats, strategies, tags, trades, uploads

configure_logging(settings.LOG_LEVEL)

app = FastAPI(title="Tradalyse Backend")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.FRONTEND_ORIGINS,
    allow_origin_regex=r"^https?://localhost(:\d+)?$",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(stats.router)
app.include_router(trades.router)
app.include_router(tags.router)
app.include_router(strategies.router)
app.include_router(imports.router)
app.include_router(uploads.router)

@app.get("/health")
def health():
    return {"ok": True}

@app.get("/")
def root():
    return {"message": "Tradalyse backend is running"}
