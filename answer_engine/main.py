from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from answer_engine.api.routes import chat, threads
from answer_engine.config import settings

app = FastAPI(
    title="Answer Engine",
    description="Conversational answer engine with search-grounded streaming answers",
    version="0.1.0",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes
app.include_router(chat.router)
app.include_router(threads.router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "service": "answer-engine"}
