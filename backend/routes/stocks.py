"""
Stock routes backed by a StockRepository.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from backend.dependencies import get_stock_repository
from backend.repositories import NotFoundError, StockRepository
from backend.schemas import StockPriceSchema, StockQuoteResponse, StockSchema

router = APIRouter(prefix="/stocks", tags=["stocks"])


@router.get("", response_model=list[StockSchema])
def list_stocks(repo: StockRepository = Depends(get_stock_repository)):
    return [stock.as_dict() for stock in repo.list_stocks()]


@router.get(
    "/quotes/{symbol}",
    response_model=StockQuoteResponse,
)
def get_quote(symbol: str, repo: StockRepository = Depends(get_stock_repository)):
    """
    Latest quote for ``symbol``. A known stock without prices answers with
    zeroed price fields rather than 404.
    """
    try:
        stock = repo.get_stock(symbol)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail="stock not found") from exc

    quote = StockQuoteResponse(
        symbol=stock.symbol,
        name=stock.name,
        market_cap=stock.market_cap,
        sector=stock.sector,
    )
    try:
        price = repo.latest_price(symbol)
    except NotFoundError:
        return quote
    return quote.model_copy(
        update={
            "price": price.close,
            "open": price.open,
            "high": price.high,
            "low": price.low,
            "volume": price.volume,
        }
    )


@router.get(
    "/{symbol}/history",
    response_model=list[StockPriceSchema],
)
def get_price_history(
    symbol: str,
    limit: int = Query(0, ge=0, le=5000, description="0 returns the full history"),
    repo: StockRepository = Depends(get_stock_repository),
):
    try:
        repo.get_stock(symbol)
        history = repo.price_history(symbol, limit=limit)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail="stock not found") from exc
    return [price.as_dict() for price in history]
