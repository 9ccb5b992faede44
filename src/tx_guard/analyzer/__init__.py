from .call_decoder import FunctionCallDecoder
from .fraud_orchestrator import AddressScreen, FraudAnalysisOrchestrator
from .interface_resolver import ContractInterfaceResolver
from .pipeline import TransactionAnalyzer
from .risk_classifier import RiskClassifier
from .tx_decoder import RawTransactionDecoder

__all__ = [
    "AddressScreen",
    "ContractInterfaceResolver",
    "FraudAnalysisOrchestrator",
    "FunctionCallDecoder",
    "RawTransactionDecoder",
    "RiskClassifier",
    "TransactionAnalyzer",
]
