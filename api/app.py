#!/usr/bin/env python3
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

import aiohttp
from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.schemas import (
    AnalysisOut,
    AnalyzeRequest,
    ErrorOut,
    HealthOut,
    PairOut,
    TokenOut,
    TokensOut,
    TradeCreate,
    TradeOut,
)
from config import AppConfig
from constants import BASE_CHAIN_ID, NETWORK_NAME
from routing.engine import RouteRankingEngine, build_engine
from routing.errors import InputError, NoLiquidity
from routing.execution_quality import derive_execution_quality
from routing.tokens import list_pairs, list_tokens
from storage.models import TradeRecord
from storage.sqlite_repository import DuplicateTradeId, SQLiteRepository, generate_trade_id

logger = logging.getLogger(__name__)

NO_LIQUIDITY_CODE = "NO_LIQUIDITY"
NO_LIQUIDITY_RECOMMENDATION = "demo"


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    body = ErrorOut(error=message, **extra).model_dump(by_alias=True, exclude_none=True)
    return JSONResponse(status_code=status_code, content=body)


def _format_validation_error(exc: RequestValidationError) -> str:
    messages = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        messages.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return "Validation error: " + "; ".join(messages)


def _record_from_payload(payload: TradeCreate) -> TradeRecord:
    execution_quality = payload.execution_quality
    quality_score = payload.quality_score
    if not execution_quality or not quality_score:
        quality = derive_execution_quality(payload.predicted_output, payload.amount_out)
        execution_quality = execution_quality or quality.label
        quality_score = quality_score or f"{quality.score:.2f}"

    return TradeRecord(
        trade_id=payload.trade_id or generate_trade_id(),
        pair_from=payload.pair_from,
        pair_to=payload.pair_to,
        amount_in=payload.amount_in,
        amount_out=payload.amount_out,
        type=payload.type,
        route=payload.route,
        effective_rate=payload.effective_rate,
        gas_cost=payload.gas_cost,
        gas_used=payload.gas_used,
        execution_quality=execution_quality,
        quality_score=quality_score,
        predicted_output=payload.predicted_output,
        price_impact=payload.price_impact,
        transaction_hash=payload.transaction_hash,
        wallet_address=payload.wallet_address,
        network=payload.network,
        block_number=payload.block_number,
        status=payload.status,
        routes_analyzed=payload.routes_analyzed,
    )


def create_app(
    config: AppConfig,
    *,
    engine: Optional[RouteRankingEngine] = None,
    repository: Optional[SQLiteRepository] = None,
) -> FastAPI:
    """Builds the HTTP API.

    Collaborators that are not injected are created in the lifespan and
    released on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        session = aiohttp.ClientSession() if engine is None else None
        app.state.engine = engine if engine is not None else build_engine(config, session)
        app.state.repository = repository if repository is not None else SQLiteRepository(config.db_path)
        logger.info("API ready (quote source: %s, db: %s)", app.state.engine.source, config.db_path)
        try:
            yield
        finally:
            if session is not None:
                await session.close()
            if repository is None:
                app.state.repository.close()

    app = FastAPI(title="Route Desk API", version="1.0.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _error(400, _format_validation_error(exc))

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(500, str(exc) or exc.__class__.__name__)

    @app.get("/api/health", response_model=HealthOut)
    async def health(request: Request):
        return HealthOut(
            status="ok",
            quote_source=request.app.state.engine.source,
            network=NETWORK_NAME,
            chain_id=BASE_CHAIN_ID,
        )

    @app.get("/api/tokens", response_model=TokensOut)
    async def tokens():
        return TokensOut(
            tokens=[TokenOut.from_token(token) for token in list_tokens()],
            pairs=[PairOut.from_pair(pair) for pair in list_pairs()],
        )

    @app.post("/api/analyze", response_model=AnalysisOut)
    async def analyze(payload: AnalyzeRequest, request: Request):
        engine: RouteRankingEngine = request.app.state.engine
        try:
            result = await engine.analyze(payload.pair_from, payload.pair_to, str(payload.amount_in))
        except InputError as exc:
            return _error(400, str(exc))
        except NoLiquidity as exc:
            return _error(
                422,
                str(exc),
                code=NO_LIQUIDITY_CODE,
                recommendation=NO_LIQUIDITY_RECOMMENDATION,
            )
        return AnalysisOut.from_result(result)

    @app.post("/api/trades", response_model=TradeOut, status_code=201)
    async def create_trade(payload: TradeCreate, request: Request):
        repo: SQLiteRepository = request.app.state.repository
        record = _record_from_payload(payload)
        try:
            stored = await repo.create_trade(record)
        except DuplicateTradeId as exc:
            return _error(400, str(exc))
        except Exception as exc:
            logger.error("Failed to store trade %s: %s", record.trade_id, exc)
            return _error(500, f"Failed to store trade: {exc}")
        logger.info("Recorded trade %s for %s", stored.trade_id, stored.wallet_address)
        return TradeOut.from_record(stored)

    @app.get("/api/trades", response_model=List[TradeOut])
    async def list_trades(
        request: Request,
        wallet_address: Optional[str] = Query(default=None, alias="walletAddress"),
        trade_ids: Optional[str] = Query(default=None, alias="tradeIds"),
    ):
        repo: SQLiteRepository = request.app.state.repository
        try:
            if trade_ids:
                ids = [trade_id.strip() for trade_id in trade_ids.split(",") if trade_id.strip()]
                records = await repo.fetch_trades_by_ids(ids)
                if wallet_address:
                    records = [r for r in records if r.wallet_address.lower() == wallet_address.lower()]
            elif wallet_address:
                records = await repo.fetch_trades_by_wallet(wallet_address)
            else:
                records = await repo.fetch_all_trades()
        except Exception as exc:
            logger.error("Failed to list trades: %s", exc)
            return _error(500, f"Failed to list trades: {exc}")
        return [TradeOut.from_record(record) for record in records]

    @app.get("/api/trades/{trade_id}", response_model=TradeOut)
    async def get_trade(trade_id: str, request: Request):
        repo: SQLiteRepository = request.app.state.repository
        record = await repo.fetch_trade(trade_id)
        if record is None:
            return _error(404, "Trade not found")
        return TradeOut.from_record(record)

    return app
