"""Core domain logic for bridgeswap."""

from .actions import ApproveAction, CrossChainMessage, SwapAction, build_cross_chain_message
from .bridge import AcrossBridge
from .orchestrator import BridgeSwapOrchestrator, RunResult, create_orchestrator
from .progress import ExecutionObserver, ExecutionReport, ProgressEvent, ProgressStatus, ProgressStep
from .quotes import Quote, request_quote
from .routing import BalancerRouter, SwapCall
from .swap import generate_swap_call

__all__ = [
    "AcrossBridge",
    "ApproveAction",
    "BalancerRouter",
    "BridgeSwapOrchestrator",
    "CrossChainMessage",
    "ExecutionObserver",
    "ExecutionReport",
    "ProgressEvent",
    "ProgressStatus",
    "ProgressStep",
    "Quote",
    "RunResult",
    "SwapAction",
    "SwapCall",
    "build_cross_chain_message",
    "create_orchestrator",
    "generate_swap_call",
    "request_quote",
]
