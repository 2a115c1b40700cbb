"""
Tests for the bet flow state machine.
"""

import pytest
from unittest.mock import AsyncMock

from xmarket.balances.resolver import BalanceResolver, StaticBalanceReader
from xmarket.bridge.executor import BridgeExecution, LiFiBridgeExecutor, SimulatedBridgeExecutor
from xmarket.bridge.planner import RoutePlanner
from xmarket.errors import InvalidTransition, RouteUnavailable
from xmarket.flow import BetFlowOrchestrator, BetFlowResult, BetFlowStatus, describe
from xmarket.flow.orchestrator import HISTORY_LIMIT
from xmarket.flow.render import MESSAGES
from xmarket.trading.executor import MockTradeExecutor

from helpers import ARBITRUM, BASE, POLYGON, WALLET

S = BetFlowStatus


@pytest.fixture
def mock_planner(sample_route):
    """Create a mock route planner returning one route."""
    planner = AsyncMock(spec=RoutePlanner)
    planner.get_routes.return_value = [sample_route]
    return planner


def make_flow(chains, planner, balances, failing=None, bridge_executor=None, demo_mode=False):
    resolver = BalanceResolver(StaticBalanceReader(balances, failing), chains)
    statuses = []
    flow = BetFlowOrchestrator(
        resolver=resolver,
        planner=planner,
        bridge_executor=bridge_executor or SimulatedBridgeExecutor(),
        destination_chain_id=POLYGON,
        trade_executor=MockTradeExecutor(delay_seconds=0),
        demo_mode=demo_mode,
        on_transition=lambda r: statuses.append(r.status)
    )
    return flow, statuses


class TestPrepare:
    """Tests for the prepare path."""

    @pytest.mark.asyncio
    async def test_destination_funded_is_ready_without_scan(self, chains, mock_planner):
        flow, statuses = make_flow(chains, mock_planner, {POLYGON: 50, ARBITRUM: 100})
        flow.resolver.get_balances = AsyncMock(wraps=flow.resolver.get_balances)

        result = await flow.prepare(10, WALLET)

        assert result.status == S.READY
        assert result.destination_balance == 50
        assert result.source_chain.chain_id == POLYGON
        assert statuses == [S.CHECKING_DESTINATION, S.READY]
        flow.resolver.get_balances.assert_not_called()
        mock_planner.get_routes.assert_not_called()

    @pytest.mark.asyncio
    async def test_funds_elsewhere_need_bridge(self, chains, mock_planner, sample_route):
        flow, statuses = make_flow(chains, mock_planner, {POLYGON: 0, ARBITRUM: 100})

        result = await flow.prepare(10, WALLET)

        assert result.status == S.NEEDS_BRIDGE
        assert result.source_chain.chain_id == ARBITRUM
        assert result.chosen_route == sample_route
        assert result.all_balances[0].chain_id == ARBITRUM
        assert statuses == [
            S.CHECKING_DESTINATION, S.SCANNING_CHAINS, S.GETTING_ROUTE, S.NEEDS_BRIDGE
        ]
        mock_planner.get_routes.assert_called_once_with(
            from_chain_id=ARBITRUM, to_chain_id=POLYGON, amount=10, user_address=WALLET
        )

    @pytest.mark.asyncio
    async def test_no_funds_anywhere(self, chains, mock_planner):
        flow, _ = make_flow(chains, mock_planner, {})

        result = await flow.prepare(10, WALLET)

        assert result.status == S.INSUFFICIENT
        assert result.total_available == 0
        assert len(result.all_balances) == len(chains)
        assert "Total USDC $0.00 < required $10.00" == result.error
        mock_planner.get_routes.assert_not_called()

    @pytest.mark.asyncio
    async def test_total_across_chains_too_small(self, chains, mock_planner):
        flow, _ = make_flow(chains, mock_planner, {POLYGON: 2, BASE: 5})

        result = await flow.prepare(10, WALLET)

        assert result.status == S.INSUFFICIENT
        assert result.total_available == 7
        mock_planner.get_routes.assert_not_called()

    @pytest.mark.asyncio
    async def test_short_sources_with_enough_total_bridge(self, chains, mock_planner):
        flow, statuses = make_flow(chains, mock_planner, {POLYGON: 5, BASE: 8})

        result = await flow.prepare(10, WALLET)

        assert result.status == S.NEEDS_BRIDGE
        assert result.destination_balance == 5
        assert result.source_chain.chain_id == BASE
        assert statuses[-2:] == [S.GETTING_ROUTE, S.NEEDS_BRIDGE]
        mock_planner.get_routes.assert_called_once_with(
            from_chain_id=BASE, to_chain_id=POLYGON, amount=10, user_address=WALLET
        )

    @pytest.mark.asyncio
    async def test_no_route_is_error_not_insufficient(self, chains, mock_planner):
        mock_planner.get_routes.side_effect = RouteUnavailable("Arbitrum One", "Polygon")
        flow, statuses = make_flow(chains, mock_planner, {ARBITRUM: 100})

        result = await flow.prepare(10, WALLET)

        assert result.status == S.ERROR
        assert result.error == "No bridge route from Arbitrum One to Polygon"
        assert result.source_chain.chain_id == ARBITRUM
        assert statuses[-2:] == [S.GETTING_ROUTE, S.ERROR]

    @pytest.mark.asyncio
    async def test_router_failure_is_error(self, chains, mock_planner):
        mock_planner.get_routes.side_effect = TimeoutError("router timed out")
        flow, _ = make_flow(chains, mock_planner, {ARBITRUM: 100})

        result = await flow.prepare(10, WALLET)

        assert result.status == S.ERROR
        assert "Failed to fetch bridge routes" in result.error

    @pytest.mark.asyncio
    async def test_destination_rpc_error(self, chains, mock_planner):
        flow, statuses = make_flow(chains, mock_planner, {ARBITRUM: 100}, failing={POLYGON})

        result = await flow.prepare(10, WALLET)

        assert result.status == S.ERROR
        assert result.error == "Failed to check Polygon balance"
        assert statuses == [S.CHECKING_DESTINATION, S.ERROR]

    @pytest.mark.asyncio
    async def test_demo_mode_simulates_ready(self, chains, mock_planner):
        flow, _ = make_flow(chains, mock_planner, {POLYGON: 50}, demo_mode=True)

        result = await flow.prepare(10, WALLET)

        assert result.status == S.SIMULATED
        assert result.is_terminal

    @pytest.mark.asyncio
    async def test_invalid_input(self, chains, mock_planner):
        flow, _ = make_flow(chains, mock_planner, {})

        with pytest.raises(ValueError):
            await flow.prepare(0, WALLET)
        with pytest.raises(ValueError):
            await flow.prepare(10, "")
        assert flow.status == S.IDLE

    @pytest.mark.asyncio
    async def test_results_are_new_objects(self, chains, mock_planner):
        flow, _ = make_flow(chains, mock_planner, {ARBITRUM: 100})

        await flow.prepare(10, WALLET)

        ids = {id(r) for r in flow.history}
        assert len(ids) == len(flow.history)
        with pytest.raises(AttributeError):
            flow.result.status = S.READY

    def test_history_is_bounded(self, chains, mock_planner):
        flow, _ = make_flow(chains, mock_planner, {})

        for _ in range(HISTORY_LIMIT + 50):
            flow.reset()

        assert len(flow.history) == HISTORY_LIMIT
        assert flow.history[-1].status == S.IDLE


class TestBridgeConfirmation:
    """Tests for bridge execution after confirmation."""

    @pytest.mark.asyncio
    async def test_bridge_completes(self, chains, mock_planner):
        flow, statuses = make_flow(chains, mock_planner, {ARBITRUM: 100})
        await flow.prepare(10, WALLET)

        result = await flow.confirm_bridge()

        assert result.status == S.BRIDGE_COMPLETE
        assert statuses[-2:] == [S.BRIDGING, S.BRIDGE_COMPLETE]
        assert result.chosen_route is not None

    @pytest.mark.asyncio
    async def test_bridge_failure(self, chains, mock_planner):
        executor = AsyncMock(spec=LiFiBridgeExecutor)
        executor.execute.return_value = BridgeExecution(success=False, error="User rejected the request")
        flow, _ = make_flow(chains, mock_planner, {ARBITRUM: 100}, bridge_executor=executor)
        await flow.prepare(10, WALLET)

        result = await flow.confirm_bridge()

        assert result.status == S.ERROR
        assert result.error == "User rejected the request"

    @pytest.mark.asyncio
    async def test_demo_bridge_simulated(self, chains, mock_planner):
        flow, _ = make_flow(chains, mock_planner, {ARBITRUM: 100}, demo_mode=True)
        await flow.prepare(10, WALLET)

        result = await flow.confirm_bridge()

        assert result.status == S.SIMULATED

    @pytest.mark.asyncio
    async def test_confirm_requires_needs_bridge(self, chains, mock_planner):
        flow, _ = make_flow(chains, mock_planner, {POLYGON: 50})

        with pytest.raises(InvalidTransition):
            await flow.confirm_bridge()

        await flow.prepare(10, WALLET)
        with pytest.raises(InvalidTransition):
            await flow.confirm_bridge()


class TestResetAndTrade:
    """Tests for reset and trade submission."""

    @pytest.mark.asyncio
    async def test_reset_returns_to_idle(self, chains, mock_planner):
        flow, _ = make_flow(chains, mock_planner, {POLYGON: 50})
        await flow.prepare(10, WALLET)

        result = flow.reset()

        assert result.status == S.IDLE
        assert flow.result.amount_requested == 0

    @pytest.mark.asyncio
    async def test_result_after_reset_is_discarded(self, chains, mock_planner, sample_route):
        flow, statuses = make_flow(chains, mock_planner, {ARBITRUM: 100})

        async def routes_then_reset(**kwargs):
            flow.reset()
            return [sample_route]

        mock_planner.get_routes.side_effect = routes_then_reset

        result = await flow.prepare(10, WALLET)

        assert result.status == S.IDLE
        assert flow.status == S.IDLE
        assert S.NEEDS_BRIDGE not in statuses

    @pytest.mark.asyncio
    async def test_bridge_result_after_reset_is_discarded(self, chains, mock_planner):
        flow, statuses = make_flow(chains, mock_planner, {ARBITRUM: 100})
        await flow.prepare(10, WALLET)

        async def execute_then_reset(route):
            flow.reset()
            return BridgeExecution(success=True, tx_hashes=["0xabc"])

        flow.bridge_executor = AsyncMock(spec=LiFiBridgeExecutor)
        flow.bridge_executor.execute.side_effect = execute_then_reset

        result = await flow.confirm_bridge()

        assert result.status == S.IDLE
        assert S.BRIDGE_COMPLETE not in statuses

    @pytest.mark.asyncio
    async def test_prepare_again_after_terminal(self, chains, mock_planner):
        flow, _ = make_flow(chains, mock_planner, {POLYGON: 50})
        await flow.prepare(10, WALLET)

        result = await flow.prepare(80, WALLET)

        assert result.status == S.INSUFFICIENT
        assert result.amount_requested == 80

    @pytest.mark.asyncio
    async def test_trade_when_ready(self, chains, mock_planner):
        flow, _ = make_flow(chains, mock_planner, {POLYGON: 50})
        await flow.prepare(9, WALLET)

        bet = await flow.submit_trade("0xmarket", "yes")

        assert bet.success is True
        assert bet.price == 0.45
        assert bet.shares == pytest.approx(20.0)

    @pytest.mark.asyncio
    async def test_trade_not_allowed_before_bridge(self, chains, mock_planner):
        flow, _ = make_flow(chains, mock_planner, {ARBITRUM: 100})
        await flow.prepare(10, WALLET)

        with pytest.raises(InvalidTransition):
            await flow.submit_trade("0xmarket", "no")

        await flow.confirm_bridge()
        bet = await flow.submit_trade("0xmarket", "no")
        assert bet.price == 0.55


class TestDescribe:
    """Tests for user-facing flow text."""

    def test_every_status_has_text(self):
        assert set(MESSAGES) == set(BetFlowStatus)
        for status in BetFlowStatus:
            assert describe(BetFlowResult(status=status))

    @pytest.mark.asyncio
    async def test_needs_bridge_text(self, chains, mock_planner):
        flow, _ = make_flow(chains, mock_planner, {ARBITRUM: 100})
        result = await flow.prepare(10, WALLET)

        text = describe(result)

        assert "Arbitrum One" in text
        assert "~3 min" in text
        assert "$0.42" in text

    def test_insufficient_text(self):
        text = describe(BetFlowResult(status=S.INSUFFICIENT, amount_requested=10, total_available=4))

        assert "$10.00" in text
        assert "$4.00" in text
