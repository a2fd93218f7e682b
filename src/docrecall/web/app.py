"""FastAPI application exposing DocRecall search."""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import replace
from pathlib import Path
from typing import Any, List

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from docrecall import __version__
from docrecall.context import AppContext
from docrecall.errors import ConfigurationError

LOGGER = logging.getLogger(__name__)

MAX_LIMIT = 50


class SearchPayload(BaseModel):
    query: str
    limit: int = 10
    semantic_weight: float | None = None
    keyword_weight: float | None = None
    snippets: bool = False


class IndexPayload(BaseModel):
    paths: List[str]
    force: bool = False


def _context(request: Request) -> AppContext:
    return request.app.state.context


def _resolve_paths(raw_paths: List[str], allowed_root: Path | None) -> List[Path]:
    resolved: List[Path] = []
    for raw in raw_paths:
        clean = raw.strip().replace("\r", "").replace("\n", "")
        if not clean:
            continue
        if "\0" in clean:
            raise HTTPException(status_code=400, detail="Invalid path: contains null byte")

        real_path = Path(os.path.realpath(os.path.expanduser(clean)))
        if allowed_root is not None:
            root = os.path.realpath(allowed_root)
            if not (str(real_path) + os.sep).startswith(root + os.sep):
                raise HTTPException(
                    status_code=403, detail="Access denied: path is outside allowed directory"
                )
        if not real_path.exists():
            raise HTTPException(status_code=404, detail=f"Path not found: {clean}")
        resolved.append(real_path)

    if not resolved:
        raise HTTPException(status_code=400, detail="No path provided")
    return resolved


def create_app(context: AppContext, *, allowed_root: Path | None = None) -> FastAPI:
    """Build the API around an already constructed application context."""
    app = FastAPI(title="DocRecall", version=__version__)
    app.state.context = context
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.post("/search")
    async def search_documents(payload: SearchPayload, request: Request) -> dict[str, Any]:
        query = payload.query.strip()
        if not query:
            raise HTTPException(status_code=400, detail="Empty query")

        ctx = _context(request)
        changes: dict[str, Any] = {
            "limit": max(1, min(payload.limit, MAX_LIMIT)),
            "include_snippets": payload.snippets,
        }
        if payload.semantic_weight is not None:
            changes["semantic_weight"] = payload.semantic_weight
        if payload.keyword_weight is not None:
            changes["keyword_weight"] = payload.keyword_weight
        try:
            config = replace(ctx.ranker.config, **changes)
        except ConfigurationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

        results = await asyncio.to_thread(ctx.searcher.search, query, config)
        return {"results": [result.to_dict() for result in results]}

    @app.get("/stats")
    async def stats(request: Request) -> dict[str, Any]:
        ctx = _context(request)
        return {**ctx.searcher.get_stats(), "storage": ctx.store.get_stats()}

    @app.get("/documents")
    async def list_documents(request: Request) -> dict[str, Any]:
        ctx = _context(request)
        return {"documents": ctx.store.list_documents(), "stats": ctx.store.get_stats()}

    @app.post("/index")
    async def index_documents(payload: IndexPayload, request: Request) -> dict[str, Any]:
        ctx = _context(request)
        paths = _resolve_paths(payload.paths, allowed_root)
        try:
            stats = await asyncio.to_thread(ctx.indexer.index, paths, force=payload.force)
        except Exception as exc:  # pragma: no cover
            LOGGER.exception("Indexing failed: %s", exc)
            raise HTTPException(status_code=500, detail=str(exc)) from exc

        return {
            "status": "ok",
            "stats": {
                "inserted": stats.inserted,
                "updated": stats.updated,
                "skipped": stats.skipped,
                "repaired": stats.repaired,
                "failed": stats.failed,
                "chunks": stats.chunks,
                "embedding_failures": stats.embedding_failures,
                "processed_files": [str(path) for path in stats.processed_files],
            },
        }

    @app.delete("/index")
    async def clear_index(request: Request) -> dict[str, str]:
        _context(request).searcher.clear_index()
        return {"status": "ok"}

    @app.delete("/documents/cleanup")
    async def cleanup_missing_files(request: Request) -> dict[str, Any]:
        removed = _context(request).indexer.prune()
        return {"status": "ok", "removed_count": removed}

    return app
