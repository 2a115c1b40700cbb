"""
FastAPI server for the self-custodial bet flow.
One orchestrator per session id; UI layers poll or drive it over HTTP.
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
import uvicorn

from ..balances.resolver import BalanceResolver, ChainBalance, Web3BalanceReader
from ..bridge.executor import LiFiBridgeExecutor, SimulatedBridgeExecutor
from ..bridge.planner import BridgeRoute, RoutePlanner
from ..clients.clob_client import CLOBClient
from ..clients.evm_client import EvmClient
from ..clients.gamma_client import GammaClient
from ..clients.lifi_client import LiFiClient
from ..config import Config, load_config
from ..errors import InvalidTransition
from ..flow.orchestrator import BetFlowOrchestrator, BetFlowResult
from ..flow.render import describe
from ..trading.executor import TradeExecutor, create_trade_executor
from ..utils.logger import get_logger, setup_logging

logger = get_logger("api")

MAX_SESSIONS = 1000


class PrepareRequest(BaseModel):
    amount: float = Field(gt=0)
    wallet_address: str = Field(min_length=1)


class TradeRequest(BaseModel):
    market_id: str = Field(min_length=1)
    side: str = Field(pattern="^(yes|no)$")


class FlowRegistry:
    """
    Holds the orchestrator of every active session.
    At most `max_sessions` are kept; the oldest is dropped to make room.
    """

    def __init__(self, factory: Callable[[], BetFlowOrchestrator], max_sessions: int = MAX_SESSIONS):
        self.factory = factory
        self.max_sessions = max_sessions
        self._flows: dict[str, BetFlowOrchestrator] = {}

    def get(self, session_id: str) -> Optional[BetFlowOrchestrator]:
        return self._flows.get(session_id)

    def get_or_create(self, session_id: str) -> BetFlowOrchestrator:
        if session_id not in self._flows:
            while self._flows and len(self._flows) >= self.max_sessions:
                oldest = next(iter(self._flows))
                logger.info(f"Session limit reached, dropping {oldest}")
                del self._flows[oldest]
            self._flows[session_id] = self.factory()
        return self._flows[session_id]

    def remove(self, session_id: str) -> None:
        self._flows.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._flows)


def _balance_to_dict(balance: Optional[ChainBalance]) -> Optional[dict]:
    if balance is None:
        return None
    return {
        "chain_id": balance.chain_id,
        "chain_name": balance.chain_name,
        "balance": balance.balance,
    }


def _route_to_dict(route: Optional[BridgeRoute]) -> Optional[dict]:
    if route is None:
        return None
    return {
        "steps": list(route.steps),
        "estimated_seconds": route.estimated_seconds,
        "estimated_minutes": route.estimated_minutes,
        "estimated_gas_cost_usd": route.estimated_gas_cost_usd,
        "from_chain_id": route.from_chain_id,
        "to_chain_id": route.to_chain_id,
    }


def serialize_result(result: BetFlowResult) -> dict:
    """JSON body for a flow snapshot."""
    return {
        "status": result.status.value,
        "message": describe(result),
        "amount_requested": result.amount_requested,
        "destination_balance": result.destination_balance,
        "source_chain": _balance_to_dict(result.source_chain),
        "all_balances": (
            [_balance_to_dict(b) for b in result.all_balances]
            if result.all_balances is not None else None
        ),
        "chosen_route": _route_to_dict(result.chosen_route),
        "total_available": result.total_available,
        "bridge_tx_hashes": list(result.bridge_tx_hashes),
        "error": result.error,
    }


def create_app(registry: FlowRegistry, on_shutdown: Optional[Callable] = None) -> FastAPI:
    """Build the API around an existing registry."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if on_shutdown:
            await on_shutdown()

    app = FastAPI(title="xmarket Bet Flow API", lifespan=lifespan)
    app.state.registry = registry

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _require_flow(session_id: str) -> BetFlowOrchestrator:
        flow = registry.get(session_id)
        if flow is None:
            raise HTTPException(status_code=404, detail=f"No flow for session {session_id}")
        return flow

    @app.get("/")
    async def root():
        """Health check."""
        return {"status": "ok", "sessions": len(registry), "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.post("/flows/{session_id}/prepare")
    async def prepare(session_id: str, body: PrepareRequest):
        """Check balances and fetch a bridge route if needed."""
        flow = registry.get_or_create(session_id)
        try:
            result = await flow.prepare(body.amount, body.wallet_address)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except InvalidTransition as e:
            raise HTTPException(status_code=409, detail=str(e))
        return JSONResponse(content=serialize_result(result))

    @app.post("/flows/{session_id}/bridge")
    async def bridge(session_id: str):
        """Execute the route the user just confirmed."""
        flow = _require_flow(session_id)
        try:
            result = await flow.confirm_bridge()
        except InvalidTransition as e:
            raise HTTPException(status_code=409, detail=str(e))
        return JSONResponse(content=serialize_result(result))

    @app.post("/flows/{session_id}/trade")
    async def trade(session_id: str, body: TradeRequest):
        """Place the bet once funds are on the destination chain."""
        flow = _require_flow(session_id)
        try:
            bet = await flow.submit_trade(body.market_id, body.side)
        except InvalidTransition as e:
            raise HTTPException(status_code=409, detail=str(e))
        return JSONResponse(content={
            "success": bet.success,
            "order_id": bet.order_id,
            "shares": bet.shares,
            "price": bet.price,
            "error": bet.error,
        })

    @app.get("/flows/{session_id}")
    async def get_flow(session_id: str):
        """Current flow snapshot."""
        flow = _require_flow(session_id)
        return JSONResponse(content={
            **serialize_result(flow.result),
            "history": [r.status.value for r in flow.history],
        })

    @app.delete("/flows/{session_id}")
    async def reset_flow(session_id: str):
        """End the session. Results of in-flight calls are discarded."""
        flow = _require_flow(session_id)
        result = flow.reset()
        registry.remove(session_id)
        return JSONResponse(content=serialize_result(result))

    return app


def build_flow_factory(
    config: Config,
    evm_client: EvmClient,
    lifi_client: LiFiClient,
    trade_executor: Optional[TradeExecutor] = None
) -> Callable[[], BetFlowOrchestrator]:
    """Orchestrator factory sharing one set of clients across sessions."""
    resolver = BalanceResolver(Web3BalanceReader(evm_client), config.chains)
    planner = RoutePlanner(lifi_client, config.chains)

    if config.trading.demo_mode or not config.wallet.configured:
        bridge_executor = SimulatedBridgeExecutor()
    else:
        bridge_executor = LiFiBridgeExecutor(
            lifi_client,
            evm_client,
            poll_interval_seconds=config.bridge.status_poll_seconds,
            timeout_seconds=config.bridge.status_timeout_seconds
        )

    def factory() -> BetFlowOrchestrator:
        return BetFlowOrchestrator(
            resolver=resolver,
            planner=planner,
            bridge_executor=bridge_executor,
            destination_chain_id=config.destination_chain_id,
            trade_executor=trade_executor,
            demo_mode=config.trading.demo_mode
        )

    return factory


def build_app(config: Config) -> FastAPI:
    """Wire live clients from configuration into an app."""
    evm_client = EvmClient(config.chains, private_key=config.wallet.private_key or None)
    lifi_client = LiFiClient(
        base_url=config.bridge.lifi_url,
        integrator=config.bridge.integrator,
        api_key=config.bridge.api_key,
        timeout_seconds=config.http.timeout_seconds,
        max_attempts=config.http.max_attempts
    )
    gamma_client = GammaClient(
        base_url=config.polymarket.gamma_url,
        timeout_seconds=config.http.timeout_seconds,
        max_attempts=config.http.max_attempts
    )

    clob_client = None
    if config.trading.trading_mode == "live":
        clob_client = CLOBClient(
            api_key=config.polymarket.api_key,
            api_secret=config.polymarket.api_secret,
            api_passphrase=config.polymarket.api_passphrase,
            private_key=config.wallet.private_key,
            host=config.polymarket.clob_url,
            chain_id=config.destination_chain_id,
            max_attempts=config.http.max_attempts
        )

    trade_executor = create_trade_executor(config.trading.trading_mode, clob_client, gamma_client)
    registry = FlowRegistry(build_flow_factory(config, evm_client, lifi_client, trade_executor))

    async def shutdown():
        await lifi_client.close()
        await gamma_client.close()

    return create_app(registry, on_shutdown=shutdown)


def run_server(host: str = "0.0.0.0", port: int = 8000):
    """Run the API server."""
    config = load_config()
    setup_logging(level=config.logging.log_level, json_format=config.logging.json_logging)
    uvicorn.run(build_app(config), host=host, port=port)


if __name__ == "__main__":
    run_server()
