from flasharb.execution.interface import LoanGateway
from flasharb.execution.aave_gateway import AaveLoanGateway
from flasharb.execution.dry_run_gateway import DryRunLoanGateway
from flasharb.execution.simulated_gateway import SimulatedLoanGateway
from flasharb.execution.funding_guard import FundingGuard
from flasharb.execution.orchestrator import ExecutionOrchestrator, OrchestratorConfig, OrchestratorState, TradePair
from flasharb.execution.supervisor import Supervisor

__all__ = [
    "LoanGateway",
    "AaveLoanGateway",
    "DryRunLoanGateway",
    "SimulatedLoanGateway",
    "FundingGuard",
    "ExecutionOrchestrator",
    "OrchestratorConfig",
    "OrchestratorState",
    "TradePair",
    "Supervisor",
]
