from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from voxindex.api.routes.ingest import router as ingest_router
from voxindex.api.routes.items import router as items_router
from voxindex.api.routes.search import router as search_router

app = FastAPI(
    title="voxindex API",
    description="Searchable knowledge base over long-form spoken-word media",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(ingest_router)
app.include_router(search_router)
app.include_router(items_router)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}
